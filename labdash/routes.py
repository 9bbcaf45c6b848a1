import os

from flask import Blueprint, current_app, jsonify, send_from_directory, abort
from flask_login import login_required

from .dashboard import build_view
from .models import Equipment, Consumable, Reservation, ProcurementRequest, Document
from .time_helpers import now_local

bp = Blueprint("main", __name__)

OVERVIEW = (
    ("equipment", Equipment),
    ("maintenance", Equipment),
    ("consumables", Consumable),
    ("reservations", Reservation),
    ("procurement", ProcurementRequest),
    ("documents", Document),
)


@bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@bp.route("/")
@bp.route("/api/overview")
@login_required
def index():
    """Tile numbers for every tab of the dashboard in one call."""
    now = now_local()
    tiles = {}
    for kind, model in OVERVIEW:
        view = build_view(kind, model.query.all(), {}, now)
        tiles[kind] = view.stats
    return jsonify({"generated_at": now.isoformat(), "stats": tiles})


@bp.route("/uploads/<subdir>/<path:filename>")
@login_required
def serve_upload(subdir, filename):
    base = os.path.join(current_app.config["UPLOAD_FOLDER"], subdir)
    if ".." in subdir or not os.path.isfile(os.path.join(base, os.path.basename(filename))):
        abort(404)
    return send_from_directory(base, os.path.basename(filename), as_attachment=False)
