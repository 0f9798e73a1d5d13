import pytest
from fastapi.testclient import TestClient

from formsapi.config import config
from formsapi.main import app
from formsapi.repositories.memory import InMemoryFormRepository
from formsapi.repositories.sql import SQLFormRepository
from formsapi.routers import form as form_router
from formsapi.routers.form import get_form_service


@pytest.fixture
def client(service):
    app.dependency_overrides[get_form_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


BMI_FORM = {
    "name": "Avaliação física",
    "fields": [
        {"id": "peso", "label": "Peso", "kind": "number", "required": True},
        {"id": "altura", "label": "Altura", "kind": "number", "required": True},
        {
            "id": "imc",
            "label": "IMC",
            "kind": "calculated",
            "formula": "peso / (altura/100)^2",
            "dependencies": ["peso", "altura"],
            "precision": 2,
        },
    ],
}


def create_form(client, payload=BMI_FORM, **headers):
    response = client.post("/api/forms", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_form(client):
    body = create_form(client)

    assert body["id"] == "form_1"
    assert body["schemaVersion"] == 1
    assert body["active"] is True
    assert body["protected"] is False
    assert body["fields"][2]["formula"] == "peso / (altura/100)^2"


def test_create_form_rejects_bad_payload(client):
    response = client.post("/api/forms", json={"name": "Empty", "fields": []})

    assert response.status_code == 422


def test_create_form_with_cycle(client):
    payload = {
        "name": "Ciclo",
        "fields": [
            {"id": "a", "label": "A", "kind": "calculated", "formula": "b", "dependencies": ["b"]},
            {"id": "b", "label": "B", "kind": "calculated", "formula": "a", "dependencies": ["a"]},
        ],
    }

    response = client.post("/api/forms", json=payload)

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "circular_dependency"
    assert body["error"]["field"] == "a"


def test_get_form(client):
    form = create_form(client)

    assert client.get(f"/api/forms/{form['id']}").json()["name"] == BMI_FORM["name"]
    missing = client.get("/api/forms/missing")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "not_found"


def test_list_forms(client):
    create_form(client)
    create_form(client, {**BMI_FORM, "name": "Outro"})

    response = client.get("/api/forms", params={"name": "outro", "pageSize": 10})

    assert response.status_code == 200
    assert [f["name"] for f in response.json()] == ["Outro"]


def test_submit_and_read_response(client):
    form = create_form(client)

    submitted = client.post(
        f"/api/forms/{form['id']}/responses",
        json={"values": {"peso": 70, "altura": 170}, "schemaVersion": 1},
    )

    assert submitted.status_code == 201
    body = submitted.json()
    assert body["computed"] == {"imc": 24.22}
    assert body["formId"] == form["id"]

    fetched = client.get(f"/api/forms/{form['id']}/responses/{body['id']}")
    assert fetched.json()["id"] == body["id"]
    listed = client.get(f"/api/forms/{form['id']}/responses")
    assert [r["id"] for r in listed.json()] == [body["id"]]


def test_submit_with_stale_version(client):
    form = create_form(client)

    response = client.post(
        f"/api/forms/{form['id']}/responses",
        json={"values": {"peso": 70, "altura": 170}, "schemaVersion": 3},
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "schema_version_mismatch"


def test_update_schema_conflict_then_success(client):
    form = create_form(client)
    url = f"/api/forms/{form['id']}/schema"

    conflict = client.put(url, json={"schemaVersion": 1, "name": "v2"})
    assert conflict.status_code == 409
    assert conflict.json()["error"]["code"] == "schema_version_conflict"

    updated = client.put(url, json={"schemaVersion": 2, "name": "v2"})
    assert updated.status_code == 200
    assert updated.json()["schemaVersion"] == 2


def test_protected_form_delete(client, repository):
    form = create_form(client, {**BMI_FORM, "protected": True})

    refused = client.delete(f"/api/forms/{form['id']}", headers={"X-User": "ana"})
    assert refused.status_code == 403
    assert refused.json()["error"]["code"] == "protected_form"

    client.put(f"/api/forms/{form['id']}/schema", json={"protected": False})
    deleted = client.delete(f"/api/forms/{form['id']}", headers={"X-User": "ana"})
    assert deleted.status_code == 200
    assert repository.forms[form["id"]].removed_by == "ana"

    again = client.delete(f"/api/forms/{form['id']}")
    assert again.status_code == 410


def test_delete_response(client, audit_sink):
    form = create_form(client)
    response = client.post(
        f"/api/forms/{form['id']}/responses", json={"values": {"peso": 70, "altura": 170}}
    ).json()

    deleted = client.delete(f"/api/forms/{form['id']}/responses/{response['id']}")

    assert deleted.status_code == 200
    assert audit_sink.events[-1]["actor"] == "system"
    missing = client.delete(f"/api/forms/{form['id']}/responses/nope")
    assert missing.status_code == 404


def test_sql_backend_is_the_default():
    assert isinstance(get_form_service().repository, SQLFormRepository)


def test_memory_backend_keeps_forms_between_requests(monkeypatch):
    monkeypatch.setattr(config, "REPOSITORY_BACKEND", "memory")
    monkeypatch.setattr(form_router, "memory_repository", InMemoryFormRepository())
    client = TestClient(app)

    created = create_form(client)
    fetched = client.get(f"/api/forms/{created['id']}")

    assert fetched.status_code == 200
    assert fetched.json()["fields"][2]["id"] == "imc"
    assert form_router.memory_repository.forms[created["id"]].name == BMI_FORM["name"]
