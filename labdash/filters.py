"""Narrowing of a fetched collection by the dashboard's filter controls."""
from .models import EQUIPMENT_CATEGORIES
from .status import is_maintenance_due, is_maintenance_overdue, is_reservation_overdue, is_low_stock, is_expired
from .utils import field

ALL = "all"

SEARCH_FIELDS = {
    "equipment": ("name", "type", "manufacturer", "description"),
    "consumables": ("name", "description", "category", "supplier", "batch_number"),
    "reservations": ("title", "description", "purpose"),
    "procurement": ("title", "description", "category", "supplier", "order_number"),
    "documents": ("title", "description", "original_name", "tags"),
    "contacts": ("name", "role", "company", "email"),
}

EXACT_FIELDS = ("category", "location", "type", "priority")

# derived status filters; everything else under "status" is an exact match
DERIVED_STATUSES = {
    "maintenance-due": lambda ref, item: is_maintenance_due(ref, item),
    "overdue": lambda ref, item: (is_reservation_overdue(ref, item)
                                  if field(item, "end_date") is not None
                                  else is_maintenance_overdue(ref, item)),
    "low-stock": lambda ref, item: is_low_stock(item),
    "expired": lambda ref, item: is_expired(ref, item),
}


def _active(value):
    return value not in (None, "", ALL)


def matches_search(item, term, search_fields):
    needle = term.lower()
    for name in search_fields:
        value = field(item, name)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = " ".join(str(v) for v in value)
        if needle in str(value).lower():
            return True
    return False


def build_predicates(criteria, reference=None, search_fields=SEARCH_FIELDS["equipment"]):
    """Turn a criteria mapping into a list of ``item -> bool`` predicates.

    Empty and ``"all"`` values contribute nothing.
    """
    preds = []
    term = (criteria.get("search") or "").strip()
    if term:
        preds.append(lambda item: matches_search(item, term, search_fields))

    for name in EXACT_FIELDS:
        wanted = criteria.get(name)
        if _active(wanted):
            preds.append(lambda item, name=name, wanted=wanted: field(item, name) == wanted)

    group = criteria.get("group")
    if _active(group):
        types = EQUIPMENT_CATEGORIES.get(group, ())
        preds.append(lambda item: field(item, "type") in types)

    status = criteria.get("status")
    if _active(status):
        derived = DERIVED_STATUSES.get(status)
        if derived is not None:
            if reference is None:
                raise ValueError(f"status filter '{status}' needs a reference date")
            preds.append(lambda item: derived(reference, item))
        else:
            preds.append(lambda item: field(item, "status") == status)
    return preds


def filter_items(items, criteria, reference=None, search_fields=SEARCH_FIELDS["equipment"]):
    """Items matching every active criterion, in their original order."""
    preds = build_predicates(criteria or {}, reference, search_fields)
    return [item for item in items if all(p(item) for p in preds)]


def active_filters(criteria):
    return {k: v for k, v in (criteria or {}).items() if _active(v)}


CRITERIA_KEYS = ("search", "group", "status") + EXACT_FIELDS


def criteria_from(args):
    """Pick the filter keys out of a query-string mapping."""
    return {k: args.get(k) for k in CRITERIA_KEYS if _active(args.get(k))}
