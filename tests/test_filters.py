from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from labdash.filters import filter_items, criteria_from, active_filters, SEARCH_FIELDS

REF = datetime(2024, 6, 15, 9, 0, tzinfo=timezone.utc)
TODAY = REF.date()

EQUIPMENT = [
    {"id": 1, "name": "Vital Signs Monitor", "type": "Monitor", "manufacturer": "Philips",
     "description": "Bedside unit", "location": "Lab 1", "status": "ACTIVE",
     "next_maintenance_date": TODAY - timedelta(days=10)},
    {"id": 2, "name": "SimMan 3G", "type": "Simulator", "manufacturer": "Laerdal",
     "description": "Adult patient simulator with MONITOR output", "location": "Lab 2", "status": "ACTIVE",
     "next_maintenance_date": TODAY + timedelta(days=5)},
    {"id": 3, "name": "Transport Stretcher", "type": "Stretcher", "manufacturer": None,
     "description": None, "location": "Lab 1", "status": "OUT_OF_ORDER",
     "next_maintenance_date": None},
    {"id": 4, "name": "Defibrillator", "type": "Defibrillator", "manufacturer": "monitor Corp",
     "description": "AED trainer", "location": "Lab 3", "status": "ACTIVE",
     "next_maintenance_date": TODAY + timedelta(days=90)},
]


def ids(items):
    return [i["id"] for i in items]


def test_search_is_case_insensitive_and_keeps_order():
    result = filter_items(EQUIPMENT, {"search": "monitor"})
    assert ids(result) == [1, 2, 4]


def test_search_ignores_missing_fields():
    assert ids(filter_items(EQUIPMENT, {"search": "stretcher"})) == [3]


def test_empty_and_all_are_no_ops():
    assert filter_items(EQUIPMENT, {}) == EQUIPMENT
    assert filter_items(EQUIPMENT, {"search": "", "location": "all", "status": None}) == EQUIPMENT


def test_predicates_combine_with_and():
    result = filter_items(EQUIPMENT, {"location": "Lab 1", "status": "ACTIVE"})
    assert ids(result) == [1]


def test_exact_match_type():
    assert ids(filter_items(EQUIPMENT, {"type": "Simulator"})) == [2]


def test_group_selects_types():
    assert ids(filter_items(EQUIPMENT, {"group": "emergency"})) == [4]
    assert ids(filter_items(EQUIPMENT, {"group": "transport"})) == [3]


def test_derived_maintenance_due_includes_overdue():
    result = filter_items(EQUIPMENT, {"status": "maintenance-due"}, REF)
    assert ids(result) == [1, 2]


def test_derived_overdue():
    assert ids(filter_items(EQUIPMENT, {"status": "overdue"}, REF)) == [1]


def test_derived_overdue_on_reservations_uses_end_date():
    reservations = [
        {"id": 1, "title": "Skills lab", "status": "IN_PROGRESS",
         "start_date": REF - timedelta(days=3), "end_date": REF - timedelta(days=1)},
        {"id": 2, "title": "Exam", "status": "COMPLETED",
         "start_date": REF - timedelta(days=3), "end_date": REF - timedelta(days=1)},
    ]
    result = filter_items(reservations, {"status": "overdue"}, REF, search_fields=SEARCH_FIELDS["reservations"])
    assert ids(result) == [1]


def test_derived_status_needs_reference():
    with pytest.raises(ValueError):
        filter_items(EQUIPMENT, {"status": "overdue"})


def test_low_stock_on_consumables():
    consumables = [
        {"id": 1, "name": "Gauze", "current_stock": 3, "minimum_stock": 10},
        {"id": 2, "name": "Gloves", "current_stock": 40, "minimum_stock": 10},
    ]
    assert ids(filter_items(consumables, {"status": "low-stock"}, REF)) == [1]


def test_works_on_objects():
    items = [SimpleNamespace(id=1, name="ECG Monitor", type="Monitor", manufacturer=None, description=None),
             SimpleNamespace(id=2, name="Ventilator", type="Ventilator", manufacturer=None, description=None)]
    assert [i.id for i in filter_items(items, {"search": "ecg"})] == [1]


def test_document_tags_are_searched():
    docs = [{"id": 1, "title": "Manual", "tags": ["Safety", "Technical"]},
            {"id": 2, "title": "Invoice", "tags": []}]
    assert ids(filter_items(docs, {"search": "safety"}, search_fields=SEARCH_FIELDS["documents"])) == [1]


def test_criteria_from_drops_inactive_and_unknown_keys():
    args = {"search": "x", "location": "all", "status": "", "page": "2", "category": "IV Supplies"}
    assert criteria_from(args) == {"search": "x", "category": "IV Supplies"}
    assert active_filters({"search": "", "type": "Monitor"}) == {"type": "Monitor"}
