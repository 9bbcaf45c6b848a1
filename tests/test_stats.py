from datetime import datetime, timedelta, timezone

import pytest

from labdash.stats import (
    aggregate, equipment_stats, maintenance_stats, consumable_stats, reservation_stats,
    procurement_stats, document_stats, file_type,
)

REF = datetime(2024, 6, 15, 9, 0, tzinfo=timezone.utc)
TODAY = REF.date()


@pytest.mark.parametrize("kind", ["equipment", "maintenance", "consumables", "reservations", "procurement", "documents"])
def test_empty_collections_never_raise(kind):
    stats = aggregate(kind, [], REF)
    assert stats["total"] == 0
    for value in stats.values():
        if isinstance(value, dict):
            assert value == {}


def test_equipment_scenario():
    items = [
        {"name": "A", "location": "Lab 1", "status": "ACTIVE", "type": "Monitor",
         "next_maintenance_date": TODAY - timedelta(days=10)},
        {"name": "B", "location": "Lab 1", "status": "ACTIVE", "type": "Simulator",
         "next_maintenance_date": TODAY + timedelta(days=5)},
        {"name": "C", "location": "Lab 2", "status": "INACTIVE", "type": "Monitor"},
    ]
    stats = equipment_stats(items, REF)
    assert stats["total"] == 3
    assert stats["overdue"] == 1
    assert stats["maintenance_due"] == 1
    assert stats["by_location"] == {"Lab 1": 2, "Lab 2": 1}
    assert stats["by_status"] == {"ACTIVE": 2, "INACTIVE": 1}
    assert stats["by_type"] == {"Monitor": 2, "Simulator": 1}


def test_maintenance_tab_counts():
    items = [
        {"next_maintenance_date": TODAY - timedelta(days=1)},
        {"next_maintenance_date": TODAY},
        {"next_maintenance_date": TODAY + timedelta(days=60)},
        {"next_maintenance_date": None},
    ]
    assert maintenance_stats(items, REF) == {
        "total": 4, "due_within_30": 1, "overdue": 1, "up_to_date": 1, "unscheduled": 1,
    }


def test_consumable_value_rounds_and_missing_counts_as_zero():
    items = [
        {"category": "IV Supplies", "current_stock": 2, "minimum_stock": 10, "total_value": 10.0},
        {"category": "IV Supplies", "current_stock": 50, "minimum_stock": 10, "total_value": 0.126,
         "expiry_date": TODAY - timedelta(days=1)},
        {"category": "Medications", "current_stock": 50, "minimum_stock": 10, "total_value": None,
         "expiry_date": TODAY + timedelta(days=10)},
    ]
    stats = consumable_stats(items, REF)
    assert stats["total"] == 3
    assert stats["low_stock"] == 1
    assert stats["expired"] == 1
    assert stats["expiring_soon"] == 1
    assert stats["by_category"] == {"IV Supplies": 2, "Medications": 1}
    assert stats["total_value"] == pytest.approx(10.13)


def test_reservation_counts():
    items = [
        {"status": "IN_PROGRESS", "start_date": REF - timedelta(days=1), "end_date": REF + timedelta(days=1)},
        {"status": "IN_PROGRESS", "start_date": REF - timedelta(days=3), "end_date": REF - timedelta(days=1)},
        {"status": "OVERDUE", "start_date": REF - timedelta(days=3), "end_date": REF + timedelta(days=1)},
        {"status": "CONFIRMED", "start_date": REF + timedelta(days=2), "end_date": REF + timedelta(days=3)},
        {"status": "COMPLETED", "start_date": REF - timedelta(days=9), "end_date": REF - timedelta(days=8)},
    ]
    stats = reservation_stats(items, REF)
    assert stats["total"] == 5
    assert stats["active"] == 2
    assert stats["overdue"] == 2
    assert stats["upcoming"] == 1
    assert stats["by_status"]["IN_PROGRESS"] == 2


def test_procurement_pending_includes_under_review():
    items = [
        {"status": "SUBMITTED", "category": "Technology", "priority": "HIGH", "estimated_cost": 100.0, "quantity": 2},
        {"status": "UNDER_REVIEW", "category": "Technology", "priority": "LOW", "estimated_cost": None},
        {"status": "APPROVED", "category": "Furniture", "priority": "HIGH", "estimated_cost": 49.995, "quantity": 1},
        {"status": "COMPLETED", "category": "Furniture", "priority": "URGENT"},
    ]
    stats = procurement_stats(items)
    assert stats["pending"] == 2
    assert stats["approved"] == 1
    assert stats["completed"] == 1
    assert stats["by_priority"] == {"HIGH": 2, "LOW": 1, "URGENT": 1}
    assert stats["estimated_total"] == pytest.approx(250.0, abs=0.01)


def test_documents_group_by_subtype_and_sum_megabytes():
    items = [
        {"category": "MANUAL", "mime_type": "application/pdf", "file_size": 1024 * 1024},
        {"category": "MANUAL", "mime_type": "application/pdf", "file_size": 512 * 1024},
        {"category": "INVOICE", "mime_type": None, "file_size": None},
    ]
    stats = document_stats(items)
    assert stats["by_type"] == {"PDF": 2, "UNKNOWN": 1}
    assert stats["by_category"] == {"MANUAL": 2, "INVOICE": 1}
    assert stats["total_size"] == 1.5


def test_file_type():
    assert file_type("image/jpeg") == "JPEG"
    assert file_type("bogus") == "UNKNOWN"
    assert file_type("") == "UNKNOWN"
