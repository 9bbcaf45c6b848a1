"""Dashboard view-model.

A view is rebuilt from the latest fetched snapshot: stats over the whole
collection, then the filter, then status annotations on what is left. It is
a plain object that serializes to JSON, so the API and the HTTP client build
the same thing.
"""
import logging
from collections.abc import Mapping
from datetime import datetime, date

from .filters import filter_items, active_filters, SEARCH_FIELDS
from .stats import aggregate
from .status import classify
from .time_helpers import parse_date, parse_datetime
from .utils import to_dict

logger = logging.getLogger(__name__)

# which search fields a tab uses; maintenance and equipment share the equipment list
TAB_SEARCH = {
    "equipment": SEARCH_FIELDS["equipment"],
    "maintenance": SEARCH_FIELDS["equipment"],
    "consumables": SEARCH_FIELDS["consumables"],
    "reservations": SEARCH_FIELDS["reservations"],
    "procurement": SEARCH_FIELDS["procurement"],
    "documents": SEARCH_FIELDS["documents"],
}

# tab -> status annotator kind
TAB_CLASSIFY = {"equipment": "equipment", "maintenance": "equipment"}

DATE_FIELDS = {
    "equipment": ("acquisition_date", "last_maintenance_date", "next_maintenance_date", "warranty_expiration"),
    "consumables": ("expiry_date",),
    "procurement": ("expected_delivery", "actual_delivery"),
    "maintenance_records": ("performed_date", "next_due_date"),
}
DATETIME_FIELDS = {
    "reservations": ("start_date", "end_date", "actual_start_date", "actual_end_date"),
}
TIMESTAMP_FIELDS = ("created_at", "updated_at")


def parse_record(kind, raw):
    """JSON entity -> dict with date/datetime values in place of ISO strings."""
    record = dict(raw)
    for name in DATE_FIELDS.get(kind, ()):
        if record.get(name):
            record[name] = parse_date(record[name])
    for name in DATETIME_FIELDS.get(kind, ()) + TIMESTAMP_FIELDS:
        if record.get(name):
            record[name] = parse_datetime(record[name])
    return record


def serialize_record(item):
    if isinstance(item, Mapping):
        return {k: v.isoformat() if isinstance(v, (datetime, date)) else v for k, v in item.items()}
    return to_dict(item)


class DashboardView:
    def __init__(self, kind, reference, stats=None, items=None, filters=None, total=0, error=None):
        self.kind = kind
        self.reference = reference
        self.stats = stats or {}
        self.items = items or []
        self.filters = filters or {}
        self.total = total
        self.error = error

    @property
    def showing(self):
        return len(self.items)

    @property
    def retry(self):
        return self.error is not None

    def to_dict(self):
        return {
            "kind": self.kind,
            "reference": self.reference.isoformat() if self.reference else None,
            "stats": self.stats,
            "filters": self.filters,
            "total": self.total,
            "showing": self.showing,
            "items": self.items,
            "error": self.error,
            "retry": self.retry,
        }

    def __repr__(self):
        return f"<DashboardView {self.kind} {self.showing}/{self.total}{' error' if self.error else ''}>"


def build_view(kind, items, criteria, reference, serialize=serialize_record):
    """Stats over ``items``, then filter by ``criteria``, then annotate the visible rows."""
    items = list(items)
    stats = aggregate(kind, items, reference)
    visible = filter_items(items, criteria, reference, search_fields=TAB_SEARCH.get(kind, ()))
    annotate_kind = TAB_CLASSIFY.get(kind, kind)
    rows = []
    for item in visible:
        row = serialize(item)
        annotations = classify(reference, annotate_kind, item)
        if annotations:
            row["computed"] = annotations
        rows.append(row)
    return DashboardView(kind, reference, stats=stats, items=rows,
                         filters=active_filters(criteria), total=len(items))


def failed_view(kind, reference, error, criteria=None):
    logger.warning("Could not load %s dashboard: %s", kind, error)
    return DashboardView(kind, reference, filters=active_filters(criteria),
                         error=f"Failed to load {kind} data")
