import io
from datetime import timedelta

import pytest
from openpyxl import load_workbook


@pytest.fixture
def stocked(client, make_equipment, today):
    make_equipment(name="ECG Monitor", next_maintenance_date=(today - timedelta(days=2)).isoformat())
    make_equipment(name="SimMan", type="Simulator", location="Lab 2")
    client.post("/api/consumables", json={"name": "Gauze", "category": "Bandages & Dressings", "unit": "box",
                                          "current_stock": 1, "minimum_stock": 10, "unit_cost": 4})


def test_equipment_csv(client, stocked):
    resp = client.get("/export/equipment.csv")
    assert resp.status_code == 200
    assert resp.mimetype == "text/csv"
    assert "attachment; filename=equipment_" in resp.headers["Content-Disposition"]
    lines = resp.data.decode("utf-8-sig").splitlines()
    assert lines[0].startswith("ID,Name,Type")
    assert len(lines) == 3
    assert lines[1].endswith("2 days overdue")


def test_equipment_csv_honours_filters(client, stocked):
    lines = client.get("/export/equipment.csv?location=Lab%202").data.decode("utf-8-sig").splitlines()
    assert len(lines) == 2
    assert "SimMan" in lines[1]


def test_consumables_xlsx(client, stocked):
    resp = client.get("/export/consumables.xlsx")
    assert resp.status_code == 200
    ws = load_workbook(io.BytesIO(resp.data)).active
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0][:3] == ("ID", "Name", "Category")
    assert rows[1][1] == "Gauze"
    assert rows[1][7] == 4
    assert rows[1][9] == "Critical"


def test_equipment_pdf(client, stocked):
    resp = client.get("/export/equipment.pdf")
    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert resp.data.startswith(b"%PDF")


def test_unknown_format(client):
    assert client.get("/export/equipment.docx").status_code == 404
