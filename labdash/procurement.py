from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from . import db
from .dashboard import build_view
from .filters import filter_items, criteria_from, SEARCH_FIELDS
from .models import (
    ProcurementRequest, WishList, WishListItem,
    PROCUREMENT_PRIORITY_CHOICES, PROCUREMENT_STATUS_CHOICES, PROCUREMENT_CATEGORIES,
)
from .time_helpers import now_local
from .utils import to_dict, apply_payload, log, require_admin, api_error, json_body, InvalidPayload

bp = Blueprint("procurement", __name__)

FIELDS = (
    "title", "description", "category", "priority", "status", "estimated_cost", "actual_cost", "quantity",
    "justification", "supplier", "order_number", "expected_delivery", "actual_delivery", "notes", "equipment_id",
)
REQUIRED = ("title", "category", "quantity")
CHOICES = {
    "category": PROCUREMENT_CATEGORIES,
    "priority": PROCUREMENT_PRIORITY_CHOICES,
    "status": PROCUREMENT_STATUS_CHOICES,
}
# only admins move a request past review
REVIEW_STATUSES = ("APPROVED", "REJECTED", "ORDERED", "RECEIVED", "COMPLETED")

WISH_LIST_FIELDS = ("name", "description", "is_active")
WISH_ITEM_FIELDS = ("name", "description", "category", "priority", "estimated_cost", "quantity", "notes")
WISH_ITEM_CHOICES = {"category": PROCUREMENT_CATEGORIES, "priority": PROCUREMENT_PRIORITY_CHOICES}


def request_to_dict(p):
    d = to_dict(p)
    d["requested_by"] = (p.requested_by.name or p.requested_by.email) if p.requested_by else None
    return d


def _save_request(p, data):
    before = p.status
    apply_payload(p, data, FIELDS, required=REQUIRED, choices=CHOICES)
    if p.quantity < 1:
        raise InvalidPayload("'quantity' must be at least 1.", field="quantity")
    if p.status != before and p.status in REVIEW_STATUSES and not require_admin():
        raise InvalidPayload(f"Only admins can set status {p.status}.", field="status")
    return p


# --------- REQUESTS ---------
@bp.route("/requests", methods=["GET"])
@login_required
def list_requests():
    items = ProcurementRequest.query.order_by(ProcurementRequest.created_at.desc()).all()
    criteria = criteria_from(request.args)
    if criteria:
        items = filter_items(items, criteria, now_local(), search_fields=SEARCH_FIELDS["procurement"])
    return jsonify([request_to_dict(p) for p in items])


@bp.route("/dashboard")
@login_required
def dashboard():
    items = ProcurementRequest.query.order_by(ProcurementRequest.created_at.desc()).all()
    view = build_view("procurement", items, criteria_from(request.args), now_local(), serialize=request_to_dict)
    return jsonify(view.to_dict())


@bp.route("/stats")
@login_required
def stats():
    return jsonify(build_view("procurement", ProcurementRequest.query.all(), {}, now_local()).stats)


@bp.route("/requests", methods=["POST"])
@login_required
def create_request():
    p = ProcurementRequest(requested_by_id=current_user.id, status="SUBMITTED", priority="MEDIUM", quantity=1)
    _save_request(p, json_body())
    db.session.add(p); db.session.commit()
    log("create", "ProcurementRequest", p.id, details=f"{p.title} x{p.quantity} ({p.priority})")
    return jsonify(request_to_dict(p)), 201


@bp.route("/requests/<int:request_id>", methods=["GET"])
@login_required
def get_request(request_id):
    return jsonify(request_to_dict(ProcurementRequest.query.get_or_404(request_id)))


@bp.route("/requests/<int:request_id>", methods=["PUT"])
@login_required
def update_request(request_id):
    p = ProcurementRequest.query.get_or_404(request_id)
    old = (p.status, p.estimated_cost, p.quantity)
    _save_request(p, json_body())
    db.session.commit()
    log("update", "ProcurementRequest", p.id, details=f"Before {old} / After {(p.status, p.estimated_cost, p.quantity)}")
    return jsonify(request_to_dict(p))


@bp.route("/requests/<int:request_id>", methods=["DELETE"])
@login_required
def delete_request(request_id):
    if not require_admin():
        return api_error(403, "FORBIDDEN", "Only admins can delete procurement requests.")
    p = ProcurementRequest.query.get_or_404(request_id)
    for item in p.wish_list_items:
        item.procurement_request_id = None
    db.session.delete(p); db.session.commit()
    log("delete", "ProcurementRequest", request_id)
    return jsonify({"ok": True})


# --------- WISH LISTS ---------
def wish_list_to_dict(wl):
    d = to_dict(wl)
    d["items"] = [to_dict(i) for i in wl.items]
    d["estimated_total"] = round(sum((i.estimated_cost or 0) * (i.quantity or 0) for i in wl.items), 2)
    return d


def _wish_item(raw):
    if not isinstance(raw, dict):
        raise InvalidPayload("Wish list items must be objects.", field="items")
    return apply_payload(WishListItem(quantity=1, priority="MEDIUM"), raw, WISH_ITEM_FIELDS,
                         required=("name", "category"), choices=WISH_ITEM_CHOICES)


@bp.route("/wish-lists", methods=["GET"])
@login_required
def list_wish_lists():
    lists = WishList.query.order_by(WishList.created_at.desc()).all()
    return jsonify([wish_list_to_dict(wl) for wl in lists])


@bp.route("/wish-lists", methods=["POST"])
@login_required
def create_wish_list():
    data = json_body()
    wl = apply_payload(WishList(user_id=current_user.id, is_active=True), data, WISH_LIST_FIELDS, required=("name",))
    for raw in data.get("items") or []:
        wl.items.append(_wish_item(raw))
    db.session.add(wl); db.session.commit()
    log("create", "WishList", wl.id, details=f"{wl.name} ({len(wl.items)} items)")
    return jsonify(wish_list_to_dict(wl)), 201


@bp.route("/wish-lists/<int:wish_list_id>/items", methods=["POST"])
@login_required
def add_wish_list_item(wish_list_id):
    wl = WishList.query.get_or_404(wish_list_id)
    item = _wish_item(json_body())
    wl.items.append(item)
    db.session.commit()
    return jsonify(to_dict(item)), 201


@bp.route("/wish-lists/items/<int:item_id>/request", methods=["POST"])
@login_required
def promote_wish_list_item(item_id):
    """Turn a wish list item into a submitted procurement request."""
    item = WishListItem.query.get_or_404(item_id)
    if item.procurement_request_id:
        return api_error(409, "INVALID_STATE", "Item already has a procurement request.")
    p = ProcurementRequest(
        title=item.name, description=item.description, category=item.category,
        priority=item.priority or "MEDIUM", status="SUBMITTED",
        estimated_cost=item.estimated_cost, quantity=item.quantity or 1,
        notes=item.notes, requested_by_id=current_user.id,
    )
    db.session.add(p); db.session.flush()
    item.procurement_request_id = p.id
    db.session.commit()
    log("create", "ProcurementRequest", p.id, details=f"From wish list item {item.id}")
    return jsonify(request_to_dict(p)), 201
