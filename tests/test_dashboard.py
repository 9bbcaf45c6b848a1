from datetime import date, datetime, timedelta, timezone

from labdash.dashboard import build_view, failed_view, parse_record

REF = datetime(2024, 6, 15, 9, 0, tzinfo=timezone.utc)
TODAY = REF.date()

EQUIPMENT = [
    {"id": 1, "name": "Monitor A", "type": "Monitor", "location": "Lab 1", "status": "ACTIVE",
     "next_maintenance_date": TODAY - timedelta(days=10)},
    {"id": 2, "name": "SimMan", "type": "Simulator", "location": "Lab 2", "status": "ACTIVE",
     "next_maintenance_date": TODAY + timedelta(days=5)},
    {"id": 3, "name": "Stretcher", "type": "Stretcher", "location": "Lab 1", "status": "ACTIVE"},
]


def test_stats_cover_whole_collection_while_rows_are_filtered():
    view = build_view("equipment", EQUIPMENT, {"location": "Lab 2"}, REF)
    assert view.stats["total"] == 3
    assert view.stats["overdue"] == 1
    assert view.total == 3
    assert view.showing == 1
    assert view.filters == {"location": "Lab 2"}
    row = view.items[0]
    assert row["id"] == 2
    assert row["next_maintenance_date"] == (TODAY + timedelta(days=5)).isoformat()
    assert row["computed"]["maintenance"] == {"bucket": "due-soon", "label": "Due in 5 days"}


def test_maintenance_tab_uses_equipment_annotations():
    view = build_view("maintenance", EQUIPMENT, {"status": "overdue"}, REF)
    assert view.stats["unscheduled"] == 1
    assert [r["id"] for r in view.items] == [1]
    assert view.items[0]["computed"]["maintenance"]["label"] == "10 days overdue"


def test_view_serializes():
    data = build_view("documents", [], {"search": ""}, REF).to_dict()
    assert data["kind"] == "documents"
    assert data["reference"] == REF.isoformat()
    assert data["filters"] == {}
    assert data["showing"] == 0
    assert data["error"] is None
    assert data["retry"] is False


def test_failed_view_offers_retry():
    view = failed_view("consumables", REF, RuntimeError("boom"), {"category": "IV Supplies"})
    assert view.error == "Failed to load consumables data"
    assert view.retry is True
    assert view.items == []
    assert view.filters == {"category": "IV Supplies"}


def test_parse_record_converts_iso_strings():
    record = parse_record("equipment", {
        "id": 1, "name": "x", "next_maintenance_date": "2024-07-01", "warranty_expiration": None,
        "created_at": "2024-01-01T08:00:00",
    })
    assert record["next_maintenance_date"] == date(2024, 7, 1)
    assert record["warranty_expiration"] is None
    assert record["created_at"] == datetime(2024, 1, 1, 8, 0)

    res = parse_record("reservations", {"start_date": "2024-06-15T10:00:00", "end_date": "2024-06-16T10:00:00"})
    assert res["end_date"] - res["start_date"] == timedelta(days=1)
