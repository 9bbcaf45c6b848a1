"""Status buckets for equipment, consumables and reservations.

Every function takes the reference time explicitly and works on model
instances or plain dicts. Missing data maps to the ``unknown`` bucket; nothing
here raises on absent fields.
"""
import math
from datetime import datetime, timedelta, timezone

from .utils import field

MAINTENANCE_DUE_DAYS = 30
EXPIRY_WARNING_DAYS = 30
RESERVATION_UPCOMING_DAYS = 7

CLOSED_RESERVATION_STATUSES = ("COMPLETED", "CANCELLED")


def _status(bucket, label):
    return {"bucket": bucket, "label": label}


def _delta(target, reference):
    """``target - reference`` as a timedelta.

    Date-only targets are compared on calendar days, so the time of day of
    ``reference`` does not move an item across a bucket boundary.
    """
    if not isinstance(target, datetime):
        ref_day = reference.date() if isinstance(reference, datetime) else reference
        return timedelta(days=(target - ref_day).days)
    if not isinstance(reference, datetime):
        reference = datetime.combine(reference, datetime.min.time())
    # naive datetimes are stored in UTC
    if target.tzinfo is None and reference.tzinfo is not None:
        target = target.replace(tzinfo=timezone.utc)
    elif target.tzinfo is not None and reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return target - reference


def days_until(target, reference):
    """Whole days from reference to target, rounded up. None when target is missing."""
    if target is None:
        return None
    return math.ceil(_delta(target, reference) / timedelta(days=1))


def maintenance_status(reference, equipment, due_days=MAINTENANCE_DUE_DAYS):
    next_date = field(equipment, "next_maintenance_date")
    if next_date is None:
        return _status("unknown", "No Schedule")
    days = days_until(next_date, reference)
    if days < 0:
        return _status("overdue", f"{abs(days)} days overdue")
    if days <= due_days:
        return _status("due-soon", f"Due in {days} days")
    return _status("ok", f"Due {next_date.strftime('%b %d, %Y')}")


def is_maintenance_due(reference, equipment, due_days=MAINTENANCE_DUE_DAYS):
    """Overdue or due within ``due_days``."""
    days = days_until(field(equipment, "next_maintenance_date"), reference)
    return days is not None and days <= due_days


def is_maintenance_overdue(reference, equipment):
    days = days_until(field(equipment, "next_maintenance_date"), reference)
    return days is not None and days < 0


def stock_ratio(consumable):
    """Current stock as a percentage of the minimum; None if it cannot be computed."""
    current = field(consumable, "current_stock")
    minimum = field(consumable, "minimum_stock")
    if current is None or minimum is None or minimum <= 0:
        return None
    return current / minimum * 100


def stock_status(consumable):
    current = field(consumable, "current_stock")
    minimum = field(consumable, "minimum_stock")
    if current is None or minimum is None:
        return _status("unknown", "Unknown")
    if current <= 0:
        return _status("critical", "Critical")
    if minimum <= 0:
        return _status("good", "Good")
    ratio = stock_ratio(consumable)
    if ratio <= 25:
        return _status("critical", "Critical")
    if ratio <= 50:
        return _status("low", "Low")
    if ratio <= 75:
        return _status("medium", "Medium")
    return _status("good", "Good")


def is_low_stock(consumable):
    current = field(consumable, "current_stock")
    minimum = field(consumable, "minimum_stock")
    if current is None or minimum is None:
        return False
    return current <= minimum


def is_expired(reference, consumable):
    expiry = field(consumable, "expiry_date")
    if expiry is None:
        return False
    return _delta(expiry, reference) < timedelta(0)


def is_expiring_soon(reference, consumable, warning_days=EXPIRY_WARNING_DAYS):
    expiry = field(consumable, "expiry_date")
    if expiry is None:
        return False
    delta = _delta(expiry, reference)
    return timedelta(0) <= delta <= timedelta(days=warning_days)


def expiry_status(reference, consumable, warning_days=EXPIRY_WARNING_DAYS):
    expiry = field(consumable, "expiry_date")
    if expiry is None:
        return _status("unknown", "")
    if is_expired(reference, consumable):
        return _status("expired", "Expired")
    if is_expiring_soon(reference, consumable, warning_days):
        return _status("expiring-soon", f"Expires in {days_until(expiry, reference)} days")
    return _status("ok", f"Expires {expiry.strftime('%b %d, %Y')}")


def is_reservation_closed(reservation):
    return (field(reservation, "status") in CLOSED_RESERVATION_STATUSES
            or field(reservation, "actual_end_date") is not None)


def reservation_status(reference, reservation, upcoming_days=RESERVATION_UPCOMING_DAYS):
    start = field(reservation, "start_date")
    end = field(reservation, "end_date")
    if start is None or end is None:
        return _status("unknown", "")
    if is_reservation_closed(reservation):
        return _status("closed", (field(reservation, "status") or "COMPLETED").replace("_", " ").title())
    if _delta(end, reference) < timedelta(0):
        return _status("overdue", f"{abs(days_until(end, reference))} days overdue")
    to_start = _delta(start, reference)
    if timedelta(0) <= to_start <= timedelta(days=upcoming_days):
        return _status("upcoming", f"Starts in {days_until(start, reference)} days")
    if to_start < timedelta(0):
        return _status("active", f"Due back in {days_until(end, reference)} days")
    return _status("ok", f"Starts {start.strftime('%b %d, %Y')}")


def is_reservation_overdue(reference, reservation):
    return reservation_status(reference, reservation)["bucket"] == "overdue"


def annotate_equipment(reference, equipment):
    return {"maintenance": maintenance_status(reference, equipment)}


def annotate_consumable(reference, consumable):
    return {
        "stock": stock_status(consumable),
        "expiry": expiry_status(reference, consumable),
        "low_stock": is_low_stock(consumable),
    }


def annotate_reservation(reference, reservation):
    return {"reservation": reservation_status(reference, reservation)}


def classify(reference, kind, item):
    """Status annotations for ``item`` of the given collection kind."""
    annotators = {
        "equipment": annotate_equipment,
        "consumables": annotate_consumable,
        "reservations": annotate_reservation,
    }
    annotate = annotators.get(kind)
    if annotate is None:
        return {}
    return annotate(reference, item)
