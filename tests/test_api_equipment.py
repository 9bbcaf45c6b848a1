import io
from datetime import timedelta

from labdash import db
from labdash.models import ChangeLog, Equipment


def test_requires_login(anon_client):
    resp = anon_client.get("/api/equipment")
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "UNAUTHORIZED"


def test_bad_credentials(anon_client):
    resp = anon_client.post("/auth/login", json={"email": "admin@test.local", "password": "wrong"})
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_me(user_client):
    me = user_client.get("/auth/me").get_json()
    assert me["email"] == "user@test.local"
    assert me["role"] == "USER"


def test_create_and_fetch(client, make_equipment, app):
    eq = make_equipment(name="Bedside Monitor", manufacturer="Philips", next_maintenance_date="2030-01-15")
    assert eq["status"] == "ACTIVE"
    assert eq["condition"] == "GOOD"
    assert eq["next_maintenance_date"] == "2030-01-15"
    assert eq["images"] == []

    got = client.get(f"/api/equipment/{eq['id']}").get_json()
    assert got["name"] == "Bedside Monitor"
    assert got["computed"]["maintenance"]["bucket"] == "ok"

    with app.app_context():
        entry = ChangeLog.query.filter_by(entity="Equipment", entity_id=eq["id"]).first()
        assert entry.action == "create"
        assert entry.username == "admin@test.local"


def test_create_validation_errors(client):
    resp = client.post("/api/equipment", json={"type": "Monitor", "location": "Lab 1"})
    assert resp.status_code == 400
    err = resp.get_json()["error"]
    assert err["code"] == "VALIDATION_ERROR"
    assert err["details"]["field"] == "name"

    resp = client.post("/api/equipment", json={"name": "X", "type": "Monitor", "location": "Basement"})
    assert resp.status_code == 400
    assert resp.get_json()["error"]["details"]["field"] == "location"

    resp = client.post("/api/equipment", json={"name": "X", "type": "Monitor", "location": "Lab 1",
                                               "next_maintenance_date": "soon"})
    assert resp.status_code == 400
    assert resp.get_json()["error"]["details"]["field"] == "next_maintenance_date"

    resp = client.post("/api/equipment", data="not json", content_type="text/plain")
    assert resp.status_code == 400


def test_partial_update(client, make_equipment):
    eq = make_equipment()
    resp = client.put(f"/api/equipment/{eq['id']}", json={"status": "OUT_OF_ORDER", "notes": "Screen cracked"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "OUT_OF_ORDER"
    assert body["notes"] == "Screen cracked"
    assert body["name"] == eq["name"]

    resp = client.put(f"/api/equipment/{eq['id']}", json={"status": "BROKEN"})
    assert resp.status_code == 400


def test_missing_item_is_json_404(client):
    resp = client.get("/api/equipment/999")
    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "NOT_FOUND"


def test_list_filters(client, make_equipment, today):
    make_equipment(name="ECG Monitor", next_maintenance_date=(today - timedelta(days=3)).isoformat())
    make_equipment(name="SimMan", type="Simulator", location="Lab 2",
                   next_maintenance_date=(today + timedelta(days=10)).isoformat())
    make_equipment(name="Stretcher", type="Stretcher", location="Lab 2")

    names = [e["name"] for e in client.get("/api/equipment?search=monitor").get_json()]
    assert names == ["ECG Monitor"]

    names = [e["name"] for e in client.get("/api/equipment?location=Lab%202&status=all").get_json()]
    assert names == ["SimMan", "Stretcher"]

    names = [e["name"] for e in client.get("/api/equipment?status=maintenance-due").get_json()]
    assert names == ["ECG Monitor", "SimMan"]


def test_dashboard_and_stats(client, make_equipment, today):
    make_equipment(name="A", next_maintenance_date=(today - timedelta(days=10)).isoformat())
    make_equipment(name="B", next_maintenance_date=(today + timedelta(days=5)).isoformat())
    make_equipment(name="C")

    stats = client.get("/api/equipment/stats").get_json()
    assert stats["total"] == 3
    assert stats["overdue"] == 1
    assert stats["maintenance_due"] == 1

    view = client.get("/api/equipment/dashboard?status=overdue").get_json()
    assert view["total"] == 3
    assert view["showing"] == 1
    assert view["items"][0]["name"] == "A"
    assert view["items"][0]["computed"]["maintenance"]["label"] == "10 days overdue"
    assert view["filters"] == {"status": "overdue"}


def test_delete_is_admin_only(client, user_client, make_equipment, app):
    eq = make_equipment()
    resp = user_client.delete(f"/api/equipment/{eq['id']}")
    assert resp.status_code == 403
    assert client.delete(f"/api/equipment/{eq['id']}").status_code == 200
    with app.app_context():
        assert db.session.get(Equipment, eq["id"]) is None


def test_image_upload_goes_through_file_store(client, make_equipment, file_store):
    eq = make_equipment()
    resp = client.post(
        f"/api/equipment/{eq['id']}/images",
        data={"file": (io.BytesIO(b"\xff\xd8fake-jpeg"), "front.jpg")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 201
    img = resp.get_json()
    assert img["is_primary"] is True
    assert img["size"] == len(b"\xff\xd8fake-jpeg")
    assert file_store.uploads[0]["filename"] == "front.jpg"
    assert img["url"] == file_store.uploads[0]["url"]

    second = client.post(
        f"/api/equipment/{eq['id']}/images",
        data={"file": (io.BytesIO(b"png"), "side.png")},
        content_type="multipart/form-data",
    ).get_json()
    assert second["is_primary"] is False

    got = client.get(f"/api/equipment/{eq['id']}").get_json()
    assert got["primary_image_url"] == img["url"]
    assert len(got["images"]) == 2

    assert client.delete(f"/api/equipment/{eq['id']}/images/{second['id']}").status_code == 200
    assert file_store.deleted == [second["url"]]


def test_image_upload_rejects_unknown_extension(client, make_equipment, file_store):
    eq = make_equipment()
    resp = client.post(
        f"/api/equipment/{eq['id']}/images",
        data={"file": (io.BytesIO(b"MZ"), "tool.exe")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400
    assert file_store.uploads == []


def test_options(client):
    opts = client.get("/api/equipment/options").get_json()
    assert "Lab 1" in opts["locations"]
    assert opts["categories"]["emergency"] == ["Defibrillator", "Jump Bag"]
