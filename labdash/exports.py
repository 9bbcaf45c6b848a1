from datetime import datetime

from flask import Blueprint, request, abort
from flask_login import login_required

from .filters import filter_items, criteria_from, SEARCH_FIELDS
from .models import Equipment, Consumable
from .status import maintenance_status, stock_status, expiry_status
from .time_helpers import now_local
from .utils_export import stream_csv, stream_xlsx, stream_pdf

bp = Blueprint("export", __name__)

FORMATS = ("csv", "xlsx", "pdf")

EQUIPMENT_HEADERS = ["ID", "Name", "Type", "Location", "Manufacturer", "Serial", "Status", "Condition",
                     "Last maintenance", "Next maintenance", "Maintenance"]
CONSUMABLE_HEADERS = ["ID", "Name", "Category", "Unit", "Stock", "Minimum", "Unit cost", "Total value",
                      "Expiry", "Stock status", "Expiry status"]


def _send(fmt, basename, title, headers, rows):
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"{basename}_{stamp}.{fmt}"
    if fmt == "csv":
        return stream_csv(filename, headers, rows)
    if fmt == "xlsx":
        return stream_xlsx(filename, headers, rows, sheet_title=title)
    return stream_pdf(filename, title, headers, rows)


@bp.route("/equipment.<fmt>")
@login_required
def equipment(fmt):
    if fmt not in FORMATS:
        abort(404)
    now = now_local()
    items = filter_items(Equipment.query.order_by(Equipment.name.asc()).all(), criteria_from(request.args), now,
                         search_fields=SEARCH_FIELDS["equipment"])
    rows = [
        [e.id, e.name, e.type, e.location, e.manufacturer, e.serial_number, e.status, e.condition,
         e.last_maintenance_date, e.next_maintenance_date, maintenance_status(now, e)["label"]]
        for e in items
    ]
    return _send(fmt, "equipment", "Equipment", EQUIPMENT_HEADERS, rows)


@bp.route("/consumables.<fmt>")
@login_required
def consumables(fmt):
    if fmt not in FORMATS:
        abort(404)
    now = now_local()
    items = filter_items(Consumable.query.order_by(Consumable.name.asc()).all(), criteria_from(request.args), now,
                         search_fields=SEARCH_FIELDS["consumables"])
    rows = [
        [c.id, c.name, c.category, c.unit, c.current_stock, c.minimum_stock, c.unit_cost, c.total_value,
         c.expiry_date, stock_status(c)["label"], expiry_status(now, c)["label"]]
        for c in items
    ]
    return _send(fmt, "consumables", "Consumables", CONSUMABLE_HEADERS, rows)
