from datetime import datetime

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

from . import db
from .dashboard import build_view
from .filters import filter_items, criteria_from, SEARCH_FIELDS
from .models import Equipment, Reservation, CheckInOut, RESERVATION_STATUS_CHOICES, EQUIPMENT_CONDITION_CHOICES
from .status import reservation_status, is_reservation_closed
from .time_helpers import now_local
from .utils import to_dict, apply_payload, log, require_admin, api_error, json_body, InvalidPayload

bp = Blueprint("reservations", __name__)

FIELDS = ("equipment_id", "title", "description", "start_date", "end_date", "status", "purpose", "notes")
REQUIRED = ("equipment_id", "title", "start_date", "end_date")
CHOICES = {"status": RESERVATION_STATUS_CHOICES}


def check_to_dict(c):
    return to_dict(c)


def reservation_to_dict(r):
    d = to_dict(r)
    d["equipment_name"] = r.equipment.name if r.equipment else None
    d["user_name"] = (r.user.name or r.user.email) if r.user else None
    d["check_in_out"] = [check_to_dict(c) for c in r.check_in_out]
    return d


def _validate(r):
    if db.session.get(Equipment, r.equipment_id) is None:
        raise InvalidPayload("Unknown equipment.", field="equipment_id")
    if r.end_date <= r.start_date:
        raise InvalidPayload("'end_date' must be after 'start_date'.", field="end_date")


@bp.route("", methods=["GET"], strict_slashes=False)
@login_required
def list_reservations():
    q = Reservation.query.order_by(Reservation.start_date.asc())
    equipment_id = request.args.get("equipment_id", "").strip()
    if equipment_id.isdigit():
        q = q.filter(Reservation.equipment_id == int(equipment_id))
    items = q.all()
    criteria = criteria_from(request.args)
    if criteria:
        items = filter_items(items, criteria, now_local(), search_fields=SEARCH_FIELDS["reservations"])
    return jsonify([reservation_to_dict(r) for r in items])


@bp.route("/dashboard")
@login_required
def dashboard():
    items = Reservation.query.order_by(Reservation.start_date.asc()).all()
    view = build_view("reservations", items, criteria_from(request.args), now_local(), serialize=reservation_to_dict)
    return jsonify(view.to_dict())


@bp.route("/stats")
@login_required
def stats():
    return jsonify(build_view("reservations", Reservation.query.all(), {}, now_local()).stats)


@bp.route("", methods=["POST"], strict_slashes=False)
@login_required
def create_reservation():
    r = Reservation(user_id=current_user.id, status="PENDING")
    apply_payload(r, json_body(), FIELDS, required=REQUIRED, choices=CHOICES)
    _validate(r)
    db.session.add(r); db.session.commit()
    log("create", "Reservation", r.id, details=f"{r.title} equipment={r.equipment_id} {r.start_date} -> {r.end_date}")
    return jsonify(reservation_to_dict(r)), 201


@bp.route("/<int:reservation_id>", methods=["GET"])
@login_required
def get_reservation(reservation_id):
    r = Reservation.query.get_or_404(reservation_id)
    d = reservation_to_dict(r)
    d["computed"] = {"reservation": reservation_status(now_local(), r)}
    return jsonify(d)


@bp.route("/<int:reservation_id>", methods=["PUT"])
@login_required
def update_reservation(reservation_id):
    r = Reservation.query.get_or_404(reservation_id)
    old = (r.status, r.start_date, r.end_date)
    apply_payload(r, json_body(), FIELDS, required=REQUIRED, choices=CHOICES)
    _validate(r)
    db.session.commit()
    log("update", "Reservation", r.id, details=f"Before {old} / After {(r.status, r.start_date, r.end_date)}")
    return jsonify(reservation_to_dict(r))


@bp.route("/<int:reservation_id>", methods=["DELETE"])
@login_required
def delete_reservation(reservation_id):
    r = Reservation.query.get_or_404(reservation_id)
    if r.user_id != current_user.id and not require_admin():
        return api_error(403, "FORBIDDEN", "Only the owner or an admin can delete a reservation.")
    db.session.delete(r); db.session.commit()
    log("delete", "Reservation", reservation_id)
    return jsonify({"ok": True})


# --------- CHECK-OUT / CHECK-IN ---------
def _record_check(r, check_type):
    data = request.get_json(silent=True) or {}
    condition = (data.get("condition") or "").strip() or None
    if condition and condition not in EQUIPMENT_CONDITION_CHOICES:
        raise InvalidPayload(f"'condition' must be one of: {', '.join(EQUIPMENT_CONDITION_CHOICES)}", field="condition")
    images = data.get("images") or []
    if not isinstance(images, list):
        raise InvalidPayload("'images' must be a list of URLs.", field="images")
    check = CheckInOut(
        reservation_id=r.id,
        user_id=current_user.id,
        type=check_type,
        timestamp=datetime.utcnow(),
        condition=condition,
        notes=(data.get("notes") or "").strip() or None,
        images=images,
    )
    db.session.add(check)
    return check


@bp.route("/<int:reservation_id>/check-out", methods=["POST"])
@login_required
def check_out(reservation_id):
    r = Reservation.query.get_or_404(reservation_id)
    if is_reservation_closed(r) or r.actual_start_date is not None:
        return api_error(409, "INVALID_STATE", f"Reservation is {r.status} and cannot be checked out.")
    check = _record_check(r, "CHECK_OUT")
    r.status = "IN_PROGRESS"
    r.actual_start_date = check.timestamp
    db.session.commit()
    log("check_out", "Reservation", r.id, details=f"condition={check.condition}")
    current_app.logger.info("Reservation %s checked out by %s", r.id, current_user.email)
    return jsonify(reservation_to_dict(r))


@bp.route("/<int:reservation_id>/check-in", methods=["POST"])
@login_required
def check_in(reservation_id):
    r = Reservation.query.get_or_404(reservation_id)
    if r.actual_start_date is None or is_reservation_closed(r):
        return api_error(409, "INVALID_STATE", "Reservation has not been checked out.")
    check = _record_check(r, "CHECK_IN")
    r.status = "COMPLETED"
    r.actual_end_date = check.timestamp
    if check.condition and r.equipment:
        r.equipment.condition = check.condition
    db.session.commit()
    log("check_in", "Reservation", r.id, details=f"condition={check.condition}")
    current_app.logger.info("Reservation %s checked in by %s", r.id, current_user.email)
    return jsonify(reservation_to_dict(r))
