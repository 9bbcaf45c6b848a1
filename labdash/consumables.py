from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

from . import db
from .dashboard import build_view
from .filters import filter_items, criteria_from, SEARCH_FIELDS
from .models import Consumable, ConsumableWishList, ConsumableWishListItem, CONSUMABLE_CATEGORIES, PROCUREMENT_PRIORITY_CHOICES
from .status import stock_status, expiry_status
from .time_helpers import now_local
from .utils import to_dict, apply_payload, log, require_admin, api_error, json_body, InvalidPayload

bp = Blueprint("consumables", __name__)

FIELDS = (
    "name", "description", "category", "unit", "current_stock", "minimum_stock", "maximum_stock",
    "unit_cost", "total_value", "supplier", "location", "expiry_date", "batch_number", "notes",
)
REQUIRED = ("name", "category", "unit", "current_stock", "minimum_stock")
CHOICES = {"category": CONSUMABLE_CATEGORIES}

WISH_LIST_FIELDS = ("name", "description", "is_active")
WISH_ITEM_FIELDS = ("name", "description", "category", "quantity", "unit", "estimated_cost", "priority", "notes", "consumable_id")
WISH_ITEM_CHOICES = {"category": CONSUMABLE_CATEGORIES, "priority": PROCUREMENT_PRIORITY_CHOICES}


def _save_consumable(c, data):
    apply_payload(c, data, FIELDS, required=REQUIRED, choices=CHOICES)
    if c.maximum_stock is not None and c.maximum_stock < c.minimum_stock:
        raise InvalidPayload("'maximum_stock' cannot be below 'minimum_stock'.", field="maximum_stock")
    # an explicit total_value wins, otherwise it follows stock and cost
    if "total_value" not in data:
        c.refresh_total_value()
    return c


@bp.route("", methods=["GET"], strict_slashes=False)
@login_required
def list_consumables():
    items = Consumable.query.order_by(Consumable.name.asc()).all()
    criteria = criteria_from(request.args)
    if criteria:
        items = filter_items(items, criteria, now_local(), search_fields=SEARCH_FIELDS["consumables"])
    return jsonify([to_dict(c) for c in items])


@bp.route("/dashboard")
@login_required
def dashboard():
    items = Consumable.query.order_by(Consumable.name.asc()).all()
    view = build_view("consumables", items, criteria_from(request.args), now_local())
    return jsonify(view.to_dict())


@bp.route("/stats")
@login_required
def stats():
    return jsonify(build_view("consumables", Consumable.query.all(), {}, now_local()).stats)


@bp.route("", methods=["POST"], strict_slashes=False)
@login_required
def create_consumable():
    c = _save_consumable(Consumable(current_stock=0, minimum_stock=0), json_body())
    db.session.add(c); db.session.commit()
    log("create", "Consumable", c.id, details=f"{c.name} stock={c.current_stock}")
    return jsonify(to_dict(c)), 201


@bp.route("/<int:consumable_id>", methods=["GET"])
@login_required
def get_consumable(consumable_id):
    c = Consumable.query.get_or_404(consumable_id)
    d = to_dict(c)
    d["computed"] = {"stock": stock_status(c), "expiry": expiry_status(now_local(), c)}
    return jsonify(d)


@bp.route("/<int:consumable_id>", methods=["PUT"])
@login_required
def update_consumable(consumable_id):
    c = Consumable.query.get_or_404(consumable_id)
    before = c.current_stock
    _save_consumable(c, json_body())
    db.session.commit()
    log("update", "Consumable", c.id, details=f"stock {before} -> {c.current_stock}")
    if c.current_stock <= c.minimum_stock:
        current_app.logger.info("Consumable %s is at or below minimum stock (%s/%s)", c.id, c.current_stock, c.minimum_stock)
    return jsonify(to_dict(c))


@bp.route("/<int:consumable_id>", methods=["DELETE"])
@login_required
def delete_consumable(consumable_id):
    if not require_admin():
        return api_error(403, "FORBIDDEN", "Only admins can delete consumables.")
    c = Consumable.query.get_or_404(consumable_id)
    db.session.delete(c); db.session.commit()
    log("delete", "Consumable", consumable_id)
    return jsonify({"ok": True})


# --------- WISH LISTS ---------
def wish_list_to_dict(wl):
    d = to_dict(wl)
    d["items"] = [to_dict(i) for i in wl.items]
    d["estimated_total"] = round(sum((i.estimated_cost or 0) * (i.quantity or 0) for i in wl.items), 2)
    return d


@bp.route("/wish-lists", methods=["GET"])
@login_required
def list_wish_lists():
    lists = ConsumableWishList.query.order_by(ConsumableWishList.created_at.desc()).all()
    return jsonify([wish_list_to_dict(wl) for wl in lists])


@bp.route("/wish-lists", methods=["POST"])
@login_required
def create_wish_list():
    data = json_body()
    wl = apply_payload(ConsumableWishList(user_id=current_user.id, is_active=True), data, WISH_LIST_FIELDS, required=("name",))
    for raw in data.get("items") or []:
        if not isinstance(raw, dict):
            raise InvalidPayload("Wish list items must be objects.", field="items")
        wl.items.append(apply_payload(ConsumableWishListItem(quantity=1, priority="MEDIUM"), raw, WISH_ITEM_FIELDS,
                                      required=("name", "category", "unit"), choices=WISH_ITEM_CHOICES))
    db.session.add(wl); db.session.commit()
    log("create", "ConsumableWishList", wl.id, details=f"{wl.name} ({len(wl.items)} items)")
    return jsonify(wish_list_to_dict(wl)), 201


@bp.route("/wish-lists/<int:wish_list_id>/items", methods=["POST"])
@login_required
def add_wish_list_item(wish_list_id):
    wl = ConsumableWishList.query.get_or_404(wish_list_id)
    item = apply_payload(ConsumableWishListItem(quantity=1, priority="MEDIUM"), json_body(), WISH_ITEM_FIELDS,
                         required=("name", "category", "unit"), choices=WISH_ITEM_CHOICES)
    wl.items.append(item)
    db.session.commit()
    return jsonify(to_dict(item)), 201
