"""Dashboard tile numbers, recomputed from the full collection on every fetch."""
from collections import Counter

from .status import (
    days_until, is_low_stock, is_expired, is_expiring_soon, reservation_status,
    MAINTENANCE_DUE_DAYS,
)
from .utils import field

PENDING_PROCUREMENT = ("SUBMITTED", "UNDER_REVIEW")
BYTES_PER_MB = 1024 * 1024


def _num(value):
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def equipment_stats(items, reference):
    stats = {"total": 0, "maintenance_due": 0, "overdue": 0, "by_location": Counter(), "by_status": Counter(), "by_type": Counter()}
    for item in items:
        stats["total"] += 1
        stats["by_location"][field(item, "location", "UNKNOWN")] += 1
        stats["by_status"][field(item, "status", "UNKNOWN")] += 1
        stats["by_type"][field(item, "type", "UNKNOWN")] += 1
        days = days_until(field(item, "next_maintenance_date"), reference)
        if days is None:
            continue
        if days < 0:
            stats["overdue"] += 1
        elif days <= MAINTENANCE_DUE_DAYS:
            stats["maintenance_due"] += 1
    return _plain(stats)


def maintenance_stats(items, reference):
    """Equipment counts for the maintenance tab: unscheduled items only count toward total."""
    stats = {"total": 0, "due_within_30": 0, "overdue": 0, "up_to_date": 0, "unscheduled": 0}
    for item in items:
        stats["total"] += 1
        days = days_until(field(item, "next_maintenance_date"), reference)
        if days is None:
            stats["unscheduled"] += 1
        elif days < 0:
            stats["overdue"] += 1
        elif days <= MAINTENANCE_DUE_DAYS:
            stats["due_within_30"] += 1
        else:
            stats["up_to_date"] += 1
    return stats


def consumable_stats(items, reference):
    stats = {"total": 0, "low_stock": 0, "expired": 0, "expiring_soon": 0, "by_category": Counter(), "total_value": 0.0}
    for item in items:
        stats["total"] += 1
        stats["by_category"][field(item, "category", "UNKNOWN")] += 1
        stats["total_value"] += _num(field(item, "total_value"))
        if is_low_stock(item):
            stats["low_stock"] += 1
        if is_expired(reference, item):
            stats["expired"] += 1
        elif is_expiring_soon(reference, item):
            stats["expiring_soon"] += 1
    stats["total_value"] = round(stats["total_value"], 2)
    return _plain(stats)


def reservation_stats(items, reference):
    stats = {"total": 0, "active": 0, "overdue": 0, "upcoming": 0, "by_status": Counter()}
    for item in items:
        stats["total"] += 1
        status = field(item, "status", "UNKNOWN")
        stats["by_status"][status] += 1
        if status == "IN_PROGRESS":
            stats["active"] += 1
        bucket = reservation_status(reference, item)["bucket"]
        if status == "OVERDUE" or bucket == "overdue":
            stats["overdue"] += 1
        elif bucket == "upcoming":
            stats["upcoming"] += 1
    return _plain(stats)


def procurement_stats(items):
    stats = {"total": 0, "pending": 0, "approved": 0, "completed": 0,
             "by_status": Counter(), "by_category": Counter(), "by_priority": Counter(), "estimated_total": 0.0}
    for item in items:
        stats["total"] += 1
        status = field(item, "status", "UNKNOWN")
        stats["by_status"][status] += 1
        stats["by_category"][field(item, "category", "UNKNOWN")] += 1
        stats["by_priority"][field(item, "priority", "UNKNOWN")] += 1
        stats["estimated_total"] += _num(field(item, "estimated_cost")) * (field(item, "quantity", 1) or 1)
        if status in PENDING_PROCUREMENT:
            stats["pending"] += 1
        elif status == "APPROVED":
            stats["approved"] += 1
        elif status == "COMPLETED":
            stats["completed"] += 1
    stats["estimated_total"] = round(stats["estimated_total"], 2)
    return _plain(stats)


def file_type(mime_type):
    """``application/pdf`` -> ``PDF``; unknown or malformed -> ``UNKNOWN``."""
    if not mime_type or "/" not in mime_type:
        return "UNKNOWN"
    subtype = mime_type.split("/", 1)[1]
    return subtype.upper() if subtype else "UNKNOWN"


def document_stats(items):
    stats = {"total": 0, "by_category": Counter(), "by_type": Counter(), "total_size": 0.0}
    for item in items:
        stats["total"] += 1
        stats["by_category"][field(item, "category", "OTHER")] += 1
        stats["by_type"][file_type(field(item, "mime_type"))] += 1
        stats["total_size"] += _num(field(item, "file_size")) / BYTES_PER_MB
    stats["total_size"] = round(stats["total_size"], 2)
    return _plain(stats)


def _plain(stats):
    return {k: dict(v) if isinstance(v, Counter) else v for k, v in stats.items()}


COLLECTION_STATS = {
    "equipment": equipment_stats,
    "maintenance": maintenance_stats,
    "consumables": consumable_stats,
    "reservations": reservation_stats,
    "procurement": lambda items, reference=None: procurement_stats(items),
    "documents": lambda items, reference=None: document_stats(items),
}


def aggregate(kind, items, reference=None):
    return COLLECTION_STATS[kind](items, reference)
