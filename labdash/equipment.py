from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required

from . import db
from .dashboard import build_view
from .filters import filter_items, criteria_from, SEARCH_FIELDS
from .models import (
    Equipment, EquipmentImage, EQUIPMENT_STATUS_CHOICES, EQUIPMENT_CONDITION_CHOICES,
    EQUIPMENT_LOCATIONS, EQUIPMENT_TYPES, EQUIPMENT_CATEGORIES,
)
from .storage import get_file_store, allowed_file
from .status import maintenance_status
from .time_helpers import now_local
from .utils import to_dict, apply_payload, log, require_admin, api_error, json_body, InvalidPayload

bp = Blueprint("equipment", __name__)

FIELDS = (
    "name", "type", "description", "location", "manufacturer", "serial_number", "model_number",
    "acquisition_date", "last_maintenance_date", "next_maintenance_date", "maintenance_interval",
    "warranty_expiration", "status", "condition", "notes", "contact_person_id", "manufacturer_id",
)
REQUIRED = ("name", "type", "location")
CHOICES = {
    "status": EQUIPMENT_STATUS_CHOICES,
    "condition": EQUIPMENT_CONDITION_CHOICES,
    "location": EQUIPMENT_LOCATIONS,
}


def image_to_dict(img):
    return to_dict(img)


def equipment_to_dict(eq):
    d = to_dict(eq)
    d["images"] = [image_to_dict(i) for i in eq.images]
    primary = eq.primary_image()
    d["primary_image_url"] = primary.url if primary else None
    d["maintenance_records_count"] = len(eq.maintenance_records)
    d["contact_person"] = eq.contact_person.name if eq.contact_person else None
    return d


@bp.route("", methods=["GET"], strict_slashes=False)
@login_required
def list_equipment():
    items = Equipment.query.order_by(Equipment.name.asc()).all()
    criteria = criteria_from(request.args)
    if criteria:
        items = filter_items(items, criteria, now_local(), search_fields=SEARCH_FIELDS["equipment"])
    return jsonify([equipment_to_dict(e) for e in items])


@bp.route("/dashboard")
@login_required
def dashboard():
    items = Equipment.query.order_by(Equipment.name.asc()).all()
    view = build_view("equipment", items, criteria_from(request.args), now_local(), serialize=equipment_to_dict)
    return jsonify(view.to_dict())


@bp.route("/stats")
@login_required
def stats():
    view = build_view("equipment", Equipment.query.all(), {}, now_local())
    return jsonify(view.stats)


@bp.route("/options")
@login_required
def options():
    return jsonify({
        "locations": list(EQUIPMENT_LOCATIONS),
        "types": list(EQUIPMENT_TYPES),
        "categories": {k: list(v) for k, v in EQUIPMENT_CATEGORIES.items()},
        "statuses": list(EQUIPMENT_STATUS_CHOICES),
        "conditions": list(EQUIPMENT_CONDITION_CHOICES),
    })


@bp.route("", methods=["POST"], strict_slashes=False)
@login_required
def create_equipment():
    data = json_body()
    eq = Equipment(status="ACTIVE", condition="GOOD")
    apply_payload(eq, data, FIELDS, required=REQUIRED, choices=CHOICES)
    db.session.add(eq); db.session.commit()
    log("create", "Equipment", eq.id, details=f"Created equipment {eq.name}")
    current_app.logger.info("Equipment %s created (%s)", eq.id, eq.name)
    return jsonify(equipment_to_dict(eq)), 201


@bp.route("/<int:equipment_id>", methods=["GET"])
@login_required
def get_equipment(equipment_id):
    eq = Equipment.query.get_or_404(equipment_id)
    d = equipment_to_dict(eq)
    d["computed"] = {"maintenance": maintenance_status(now_local(), eq)}
    return jsonify(d)


@bp.route("/<int:equipment_id>", methods=["PUT"])
@login_required
def update_equipment(equipment_id):
    eq = Equipment.query.get_or_404(equipment_id)
    data = json_body()
    old = (eq.name, eq.status, eq.location, eq.next_maintenance_date)
    apply_payload(eq, data, FIELDS, required=REQUIRED, choices=CHOICES)
    db.session.commit()
    log("update", "Equipment", eq.id, details=f"Before {old} / After {(eq.name, eq.status, eq.location, eq.next_maintenance_date)}")
    return jsonify(equipment_to_dict(eq))


@bp.route("/<int:equipment_id>", methods=["DELETE"])
@login_required
def delete_equipment(equipment_id):
    if not require_admin():
        return api_error(403, "FORBIDDEN", "Only admins can delete equipment.")
    eq = Equipment.query.get_or_404(equipment_id)
    name = eq.name
    store = get_file_store()
    for img in eq.images:
        store.delete(img.url)
    db.session.delete(eq); db.session.commit()
    log("delete", "Equipment", equipment_id, details=f"Deleted equipment {name}")
    return jsonify({"ok": True})


# --------- IMAGES ---------
@bp.route("/<int:equipment_id>/images", methods=["POST"])
@login_required
def upload_image(equipment_id):
    eq = Equipment.query.get_or_404(equipment_id)
    f = request.files.get("file")
    if not f or not getattr(f, "filename", ""):
        raise InvalidPayload("A file is required.", field="file")
    if not allowed_file(f.filename):
        raise InvalidPayload(f"File type not allowed: {f.filename}", field="file")
    data = f.read()
    url = get_file_store().upload(f.filename, data, f.mimetype)
    is_primary = (request.form.get("is_primary") or "").lower() in ("1", "true", "on", "yes") or not eq.images
    if is_primary:
        for other in eq.images:
            other.is_primary = False
    img = EquipmentImage(
        equipment_id=eq.id,
        filename=f.filename,
        url=url,
        size=len(data),
        mime_type=f.mimetype,
        description=(request.form.get("description") or "").strip() or None,
        is_primary=is_primary,
    )
    db.session.add(img); db.session.commit()
    log("add_image", "Equipment", eq.id, details=f"Image {img.filename}")
    return jsonify(image_to_dict(img)), 201


@bp.route("/<int:equipment_id>/images/<int:image_id>", methods=["DELETE"])
@login_required
def delete_image(equipment_id, image_id):
    img = EquipmentImage.query.filter_by(id=image_id, equipment_id=equipment_id).first_or_404()
    get_file_store().delete(img.url)
    db.session.delete(img); db.session.commit()
    return jsonify({"ok": True})
