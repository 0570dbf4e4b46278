from __future__ import annotations

import inspect
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app import accounts, api, registry
from app.main import create_app
from datastore.tables import build_default_database
from services.container import build_default_container
from settings import get_settings
from storage.uploads import build_default_store

from conftest import COMPLIANT_READING

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin123"

_CACHES = (get_settings, build_default_database, build_default_store, build_default_container)


def _clear_caches() -> None:
    for cache in _CACHES:
        cache.cache_clear()


@pytest.fixture
def api_client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("AUTH_SECRET", "test-secret")
    monkeypatch.setenv("MAX_UPLOAD_BYTES", "64")
    _clear_caches()

    with TestClient(create_app()) as client:
        yield client

    _clear_caches()


def _login(client: TestClient, email: str, password: str) -> Dict[str, str]:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def admin(api_client: TestClient) -> Dict[str, str]:
    return _login(api_client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def location(api_client: TestClient, admin: Dict[str, str]) -> Dict[str, str]:
    institution = api_client.post("/api/institutions", json={"name": "Alpha Hospital"}, headers=admin)
    assert institution.status_code == 200
    institution_id = institution.json()["id"]
    sector = api_client.post(
        "/api/sectors",
        json={"name": "Adult ICU", "institution_id": institution_id},
        headers=admin,
    )
    assert sector.status_code == 200
    return {"institution_id": institution_id, "sector_id": sector.json()["id"]}


def _record(client: TestClient, headers, location, date: str = "2024-03-01T09:30:00Z", **overrides) -> str:
    payload = {**COMPLIANT_READING, **overrides, **location, "date": date}
    response = client.post("/api/measurements", json=payload, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["id"]


def test_health_and_limits_are_public(api_client: TestClient) -> None:
    assert api_client.get("/api/health").json() == {"status": "ok"}
    limits = api_client.get("/api/limits").json()
    assert limits["co2"] == 1000
    assert limits["humidity_max"] == 60


def test_measurement_lifecycle(api_client: TestClient, admin, location) -> None:
    ok_id = _record(api_client, admin, location)
    bad_id = _record(api_client, admin, location, date="2024-03-02T09:30:00Z", humidity=70)

    listing = api_client.get("/api/measurements", headers=admin).json()
    assert listing["total"] == 2
    assert [item["id"] for item in listing["items"]] == [bad_id, ok_id]

    detail = api_client.get(f"/api/measurements/{ok_id}", headers=admin).json()
    assert detail["status"] == "compliant"
    assert detail["files"] == []

    checks = api_client.get(f"/api/measurements/{bad_id}/checks", headers=admin).json()
    assert checks == {"id": bad_id, "status": "non_compliant", "failing": ["humidity"]}

    payload = {**COMPLIANT_READING, **location, "date": "2024-03-02T09:30:00Z"}
    updated = api_client.put(f"/api/measurements/{bad_id}", json=payload, headers=admin)
    assert updated.json() == {"ok": True}
    assert api_client.get(f"/api/measurements/{bad_id}", headers=admin).json()["status"] == "compliant"

    assert api_client.delete(f"/api/measurements/{bad_id}", headers=admin).status_code == 200
    assert api_client.get(f"/api/measurements/{bad_id}", headers=admin).status_code == 404


def test_filters_and_dashboard(api_client: TestClient, admin, location) -> None:
    _record(api_client, admin, location, date="2024-03-01T09:00:00Z", temperature=22)
    _record(api_client, admin, location, date="2024-03-05T09:00:00Z", temperature=28)

    window = api_client.get(
        "/api/measurements",
        params={"from": "2024-03-04T00:00:00Z", "sector_id": location["sector_id"]},
        headers=admin,
    ).json()
    assert window["total"] == 1

    dashboard = api_client.get("/api/measurements/bi", headers=admin).json()
    assert dashboard["kpis"] == {
        "temperature_avg": 25.0,
        "humidity_avg": 50.0,
        "compliant_count": 1,
        "non_compliant_count": 1,
    }
    assert [point["date"] for point in dashboard["series"]] == ["2024-03-01", "2024-03-05"]


def test_reports(api_client: TestClient, admin, location) -> None:
    measurement_id = _record(api_client, admin, location)

    pdf = api_client.get("/api/measurements/report", headers=admin)
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    excel = api_client.get("/api/measurements/report", params={"format": "excel"}, headers=admin)
    assert excel.headers["content-type"].startswith("application/vnd.openxmlformats")
    assert 'filename="report.xlsx"' in excel.headers["content-disposition"]

    single = api_client.get(f"/api/measurements/{measurement_id}/report", headers=admin)
    assert single.content.startswith(b"%PDF")
    assert single.headers["content-disposition"] == (
        'attachment; filename="measurement_2024-03-01_Alpha_Hospital_Adult_ICU.pdf"'
    )


def test_attachments_upload_and_download(api_client: TestClient, admin, location) -> None:
    measurement_id = _record(api_client, admin, location)

    response = api_client.post(
        f"/api/measurements/{measurement_id}/files",
        params={"category": "lab"},
        files=[("files", ("lab notes.txt", b"cfu counts", "text/plain"))],
        headers=admin,
    )
    assert response.status_code == 200, response.text
    attachment = response.json()["files"][0]
    assert attachment["name"] == "lab notes.txt"
    assert attachment["category"] == "lab"

    download = api_client.get(attachment["path"])
    assert download.status_code == 200
    assert download.content == b"cfu counts"

    too_large = api_client.post(
        f"/api/measurements/{measurement_id}/files",
        files=[("files", ("big.bin", b"x" * 65, "application/octet-stream"))],
        headers=admin,
    )
    assert too_large.status_code == 413

    assert api_client.get("/uploads/missing.txt").status_code == 404


def test_authentication_and_roles(api_client: TestClient, admin, location) -> None:
    assert api_client.get("/api/measurements").status_code == 401
    bogus = api_client.get("/api/measurements", headers={"Authorization": "Bearer nope"})
    assert bogus.status_code == 401

    registered = api_client.post(
        "/api/auth/register",
        json={"name": "Vera", "email": "vera@example.com", "password": "viewer1"},
    )
    assert registered.status_code == 200
    duplicate = api_client.post(
        "/api/auth/register",
        json={"name": "Vera", "email": "VERA@example.com", "password": "viewer1"},
    )
    assert duplicate.status_code == 400

    viewer = _login(api_client, "vera@example.com", "viewer1")
    assert api_client.get("/api/measurements", headers=viewer).status_code == 200
    payload = {**COMPLIANT_READING, **location, "date": "2024-03-01T09:30:00Z"}
    assert api_client.post("/api/measurements", json=payload, headers=viewer).status_code == 403
    new_user = {"name": "Eve", "email": "eve@example.com", "password": "secret1", "role": "admin"}
    assert api_client.post("/api/users", json=new_user, headers=viewer).status_code == 403

    bad_login = api_client.post("/api/auth/login", json={"email": "vera@example.com", "password": "x"})
    assert bad_login.status_code == 401


def test_user_administration(api_client: TestClient, admin) -> None:
    created = api_client.post(
        "/api/users",
        json={"name": "Ana", "email": "ana@example.com", "password": "secret1", "role": "analyst"},
        headers=admin,
    )
    assert created.status_code == 200
    user_id = created.json()["id"]

    users = api_client.get("/api/users", headers=admin).json()["items"]
    assert {user["email"] for user in users} == {ADMIN_EMAIL, "ana@example.com"}
    assert all("password_hash" not in user for user in users)

    updated = api_client.put(
        f"/api/users/{user_id}",
        json={"name": "Ana Lima", "email": "ana@example.com", "role": "viewer"},
        headers=admin,
    )
    assert updated.status_code == 200

    admin_id = next(user["id"] for user in users if user["email"] == ADMIN_EMAIL)
    assert api_client.delete(f"/api/users/{admin_id}", headers=admin).status_code == 400
    assert api_client.delete(f"/api/users/{user_id}", headers=admin).status_code == 200
    assert api_client.delete(f"/api/users/{user_id}", headers=admin).status_code == 404


def test_registry_conflicts_and_validation(api_client: TestClient, admin, location) -> None:
    conflict = api_client.delete(f"/api/institutions/{location['institution_id']}", headers=admin)
    assert conflict.status_code == 409

    unknown = api_client.post("/api/sectors", json={"name": "Lab", "institution_id": "nope"}, headers=admin)
    assert unknown.status_code == 400

    sectors = api_client.get(
        "/api/sectors", params={"institution_id": location["institution_id"]}, headers=admin
    ).json()["items"]
    assert [item["name"] for item in sectors] == ["Adult ICU"]

    incomplete = {**location, "date": "2024-03-01T09:30:00Z", "humidity": 50}
    assert api_client.post("/api/measurements", json=incomplete, headers=admin).status_code == 422

    assert api_client.get("/api/measurements/missing/checks", headers=admin).status_code == 404


def test_contact_form_is_public(api_client: TestClient, admin) -> None:
    response = api_client.post(
        "/api/contact",
        json={"name": "Ana", "email": "ana@example.com", "message": "Hello", "type": "internal"},
    )
    assert response.status_code == 201
    assert response.json()["message"] == "Message sent successfully."

    assert api_client.get("/api/contact").status_code == 401
    messages = api_client.get("/api/contact", headers=admin).json()
    assert [item["message"] for item in messages] == ["Hello"]


def test_demoted_user_loses_write_access(api_client: TestClient, admin, location) -> None:
    created = api_client.post(
        "/api/users",
        json={"name": "Ana", "email": "ana@example.com", "password": "secret1", "role": "analyst"},
        headers=admin,
    )
    analyst = _login(api_client, "ana@example.com", "secret1")
    _record(api_client, analyst, location)

    api_client.put(
        f"/api/users/{created.json()['id']}",
        json={"name": "Ana", "email": "ana@example.com", "role": "viewer"},
        headers=admin,
    )

    payload = {**COMPLIANT_READING, **location, "date": "2024-03-02T09:30:00Z"}
    assert api_client.post("/api/measurements", json=payload, headers=analyst).status_code == 403


def test_sector_with_measurements_cannot_move(api_client: TestClient, admin, location) -> None:
    _record(api_client, admin, location)
    other = api_client.post("/api/institutions", json={"name": "Beta University"}, headers=admin)

    moved = api_client.put(
        f"/api/sectors/{location['sector_id']}",
        json={"name": "Adult ICU", "institution_id": other.json()["id"]},
        headers=admin,
    )

    assert moved.status_code == 409


def test_upload_with_windows_path_is_stored(api_client: TestClient, admin, location) -> None:
    measurement_id = _record(api_client, admin, location)

    response = api_client.post(
        f"/api/measurements/{measurement_id}/files",
        files=[
            ("files", ("ok.txt", b"ok", "text/plain")),
            ("files", ("C:\\Users\\x\\scan.pdf", b"%PDF-1.4", "application/pdf")),
        ],
        headers=admin,
    )

    assert response.status_code == 200, response.text
    stored = response.json()["files"]
    assert [item["name"] for item in stored] == ["ok.txt", "scan.pdf"]
    assert api_client.get(stored[1]["path"]).content == b"%PDF-1.4"


@pytest.mark.parametrize(
    "handler",
    [
        accounts.login,
        accounts.register,
        accounts.create_user,
        accounts.update_user,
        api.create_measurement,
        api.measurements_report,
        api.measurement_report,
        api.upload_measurement_files,
        registry.create_sector,
        registry.update_sector,
    ],
)
def test_blocking_handlers_run_in_threadpool(handler) -> None:
    assert not inspect.iscoroutinefunction(handler)
