from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify
from flask_login import login_required

from . import db
from .dashboard import build_view
from .equipment import equipment_to_dict
from .filters import criteria_from, filter_items, SEARCH_FIELDS
from .models import (
    Alert, Equipment, MaintenanceRecord, ContactPerson, Manufacturer,
    MAINTENANCE_TYPE_CHOICES, MAINTENANCE_STATUS_CHOICES,
)
from .status import is_maintenance_overdue
from .time_helpers import now_local
from .utils import to_dict, apply_payload, log, require_admin, api_error, json_body, InvalidPayload

bp = Blueprint("maintenance", __name__)

RECORD_FIELDS = (
    "type", "description", "performed_date", "performed_by", "cost", "notes",
    "next_due_date", "status", "document_url",
)
RECORD_CHOICES = {"type": MAINTENANCE_TYPE_CHOICES, "status": MAINTENANCE_STATUS_CHOICES}
CONTACT_FIELDS = ("name", "role", "company", "email", "phone", "address", "notes")
MANUFACTURER_FIELDS = ("name", "website", "email", "phone", "address", "support_email", "support_phone", "notes")


def record_to_dict(m):
    d = to_dict(m)
    d["equipment_name"] = m.equipment.name if m.equipment else None
    return d


def apply_completed_maintenance(eq, record):
    """A completed record moves the equipment's schedule forward."""
    if record.status != "COMPLETED" or record.performed_date is None:
        return False
    if eq.last_maintenance_date is None or record.performed_date >= eq.last_maintenance_date:
        eq.last_maintenance_date = record.performed_date
        if record.next_due_date:
            eq.next_maintenance_date = record.next_due_date
        elif eq.maintenance_interval:
            eq.next_maintenance_date = record.performed_date + timedelta(days=eq.maintenance_interval)
    if is_maintenance_overdue(now_local(), eq):
        return True
    open_alert = Alert.query.filter_by(entity="Equipment", entity_id=eq.id, resolved=False, kind="maintenance").first()
    if open_alert:
        open_alert.resolved = True
        open_alert.resolved_at = datetime.now()
    return True


# --------- DASHBOARD ---------
@bp.route("/dashboard")
@login_required
def dashboard():
    items = Equipment.query.order_by(Equipment.next_maintenance_date.asc()).all()
    view = build_view("maintenance", items, criteria_from(request.args), now_local(), serialize=equipment_to_dict)
    return jsonify(view.to_dict())


@bp.route("/stats")
@login_required
def stats():
    return jsonify(build_view("maintenance", Equipment.query.all(), {}, now_local()).stats)


# --------- RECORDS ---------
@bp.route("/records", methods=["GET"])
@login_required
def list_records():
    q = MaintenanceRecord.query.order_by(MaintenanceRecord.performed_date.desc())
    equipment_id = request.args.get("equipment_id", "").strip()
    status = request.args.get("status", "").strip()
    if equipment_id.isdigit():
        q = q.filter(MaintenanceRecord.equipment_id == int(equipment_id))
    if status in MAINTENANCE_STATUS_CHOICES:
        q = q.filter(MaintenanceRecord.status == status)
    return jsonify([record_to_dict(m) for m in q.all()])


@bp.route("/records", methods=["POST"])
@login_required
def create_record():
    data = json_body()
    equipment_id = data.get("equipment_id")
    eq = db.session.get(Equipment, int(equipment_id)) if str(equipment_id or "").isdigit() else None
    if eq is None:
        raise InvalidPayload("A valid 'equipment_id' is required.", field="equipment_id")
    m = MaintenanceRecord(equipment_id=eq.id, status="SCHEDULED")
    apply_payload(m, data, RECORD_FIELDS, required=("type", "description", "performed_date"), choices=RECORD_CHOICES)
    db.session.add(m)
    m.equipment = eq
    apply_completed_maintenance(eq, m)
    db.session.commit()
    log("add_maintenance", "MaintenanceRecord", m.id, details=f"{eq.name}: {m.type} {m.status}")
    return jsonify(record_to_dict(m)), 201


@bp.route("/records/<int:record_id>", methods=["GET"])
@login_required
def get_record(record_id):
    return jsonify(record_to_dict(MaintenanceRecord.query.get_or_404(record_id)))


@bp.route("/records/<int:record_id>", methods=["PUT"])
@login_required
def update_record(record_id):
    m = MaintenanceRecord.query.get_or_404(record_id)
    data = json_body()
    old = (m.type, m.status, m.performed_date)
    apply_payload(m, data, RECORD_FIELDS, required=("type", "description", "performed_date"), choices=RECORD_CHOICES)
    apply_completed_maintenance(m.equipment, m)
    db.session.commit()
    log("update", "MaintenanceRecord", m.id, details=f"Before {old} / After {(m.type, m.status, m.performed_date)}")
    return jsonify(record_to_dict(m))


@bp.route("/records/<int:record_id>", methods=["DELETE"])
@login_required
def delete_record(record_id):
    if not require_admin():
        return api_error(403, "FORBIDDEN", "Only admins can delete maintenance records.")
    m = MaintenanceRecord.query.get_or_404(record_id)
    db.session.delete(m); db.session.commit()
    log("delete", "MaintenanceRecord", record_id)
    return jsonify({"ok": True})


# --------- CONTACTS ---------
@bp.route("/contacts", methods=["GET"])
@login_required
def list_contacts():
    contacts = ContactPerson.query.order_by(ContactPerson.name.asc()).all()
    term = (request.args.get("search") or "").strip()
    if term:
        contacts = filter_items(contacts, {"search": term}, search_fields=SEARCH_FIELDS["contacts"])
    return jsonify([to_dict(c) for c in contacts])


@bp.route("/contacts", methods=["POST"])
@login_required
def create_contact():
    c = apply_payload(ContactPerson(), json_body(), CONTACT_FIELDS, required=("name",))
    db.session.add(c); db.session.commit()
    log("create", "ContactPerson", c.id, details=c.name)
    return jsonify(to_dict(c)), 201


@bp.route("/contacts/<int:contact_id>", methods=["PUT"])
@login_required
def update_contact(contact_id):
    c = ContactPerson.query.get_or_404(contact_id)
    apply_payload(c, json_body(), CONTACT_FIELDS, required=("name",))
    db.session.commit()
    return jsonify(to_dict(c))


@bp.route("/contacts/<int:contact_id>", methods=["DELETE"])
@login_required
def delete_contact(contact_id):
    if not require_admin():
        return api_error(403, "FORBIDDEN", "Only admins can delete contacts.")
    c = ContactPerson.query.get_or_404(contact_id)
    for eq in c.equipment:
        eq.contact_person_id = None
    db.session.delete(c); db.session.commit()
    log("delete", "ContactPerson", contact_id)
    return jsonify({"ok": True})


# --------- MANUFACTURERS ---------
@bp.route("/manufacturers", methods=["GET"])
@login_required
def list_manufacturers():
    return jsonify([to_dict(m) for m in Manufacturer.query.order_by(Manufacturer.name.asc()).all()])


@bp.route("/manufacturers", methods=["POST"])
@login_required
def create_manufacturer():
    m = apply_payload(Manufacturer(), json_body(), MANUFACTURER_FIELDS, required=("name",))
    if Manufacturer.query.filter_by(name=m.name).first():
        raise InvalidPayload("A manufacturer with that name already exists.", field="name")
    db.session.add(m); db.session.commit()
    log("create", "Manufacturer", m.id, details=m.name)
    return jsonify(to_dict(m)), 201


@bp.route("/manufacturers/<int:manufacturer_id>", methods=["PUT"])
@login_required
def update_manufacturer(manufacturer_id):
    m = Manufacturer.query.get_or_404(manufacturer_id)
    apply_payload(m, json_body(), MANUFACTURER_FIELDS, required=("name",))
    db.session.commit()
    return jsonify(to_dict(m))
