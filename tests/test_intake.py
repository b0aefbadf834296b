"""
Tests for the client intake endpoint and workflow.
"""

import pytest

from casedesk.models.entities import CASES, CLIENT_CASES, CLIENTS
from casedesk.utils.errors import RateLimitExceededError, ValidationError
from conftest import CLIENT_TOKEN


def test_public_intake_creates_lead_case_and_link(client, store):
    """The Jane Doe consultation request."""
    response = client.post(
        "/api/clients/create",
        json={
            "firstName": "Jane",
            "lastName": "Doe",
            "email": "jane@example.com",
            "cellPhone": "+15555550123",
        },
    )

    assert response.status_code == 201
    body = response.get_json()
    assert body["success"] is True
    assert body["message"] == "Consultation request submitted successfully"

    stored_client = store.get(CLIENTS, body["clientId"])
    assert stored_client["status"] == "lead"
    assert stored_client["email"] == "jane@example.com"
    assert stored_client["clientId"] == body["clientId"]

    stored_case = store.get(CASES, body["caseId"])
    assert stored_case["status"] == "intake"
    assert stored_case["caseType"] == "Other"

    links = store.query(CLIENT_CASES, "clientId", "==", body["clientId"])
    assert len(links) == 1
    assert links[0]["caseId"] == body["caseId"]
    assert links[0]["role"] == "primary"


def test_intake_writes_exactly_one_of_each(client, store, intake_form):
    response = client.post("/api/clients/create", json=intake_form(caseType="Coop Apartment"))

    assert response.status_code == 201
    assert store.count(CLIENTS) == 1
    assert store.count(CASES) == 1
    assert store.count(CLIENT_CASES) == 1

    case = store.get(CASES, response.get_json()["caseId"])
    assert case["caseType"] == "Coop Apartment"
    assert case["propertyAddress"]


def test_attorney_intake_creates_active_client(client, store, intake_form, attorney_headers):
    response = client.post("/api/clients/create", json=intake_form(), headers=attorney_headers)

    assert response.status_code == 201
    body = response.get_json()
    assert body["message"] == "Client created successfully"
    assert store.get(CLIENTS, body["clientId"])["status"] == "active"


def test_non_attorney_token_is_treated_as_public(client, store, intake_form):
    response = client.post(
        "/api/clients/create", json=intake_form(), headers={"Authorization": f"Bearer {CLIENT_TOKEN}"}
    )

    assert response.status_code == 201
    assert store.get(CLIENTS, response.get_json()["clientId"])["status"] == "lead"


def test_missing_fields_are_all_reported(client, store):
    response = client.post("/api/clients/create", json={"firstName": "Jane", "email": "not-an-email"})

    assert response.status_code == 400
    body = response.get_json()
    assert body["success"] is False
    assert body["error"] == "VALIDATION_ERROR"
    assert set(body["fields"]) == {"lastName", "cellPhone", "email"}
    assert store.count(CLIENTS) == 0


def test_invalid_phone_rejected(client, intake_form):
    response = client.post("/api/clients/create", json=intake_form(cellPhone="12-34"))

    assert response.status_code == 400
    assert response.get_json()["fields"] == ["cellPhone"]


def test_overlong_email_rejected(client, store, intake_form):
    response = client.post("/api/clients/create", json=intake_form(email="x@example.com" + "m" * 300))

    assert response.status_code == 400
    assert response.get_json()["fields"] == ["email"]
    assert store.count(CLIENTS) == 0


def test_unknown_case_type_rejected(client, intake_form):
    response = client.post("/api/clients/create", json=intake_form(caseType="Castle"))

    assert response.status_code == 400
    assert "caseType" in response.get_json()["fields"]


def test_non_json_body_rejected(client):
    response = client.post("/api/clients/create", data="firstName=Jane", content_type="text/plain")

    assert response.status_code == 400
    assert response.get_json()["error"] == "VALIDATION_ERROR"


def test_rate_limit_allows_three_per_day(client, store, intake_form):
    email = "repeat@example.com"
    for _ in range(3):
        assert client.post("/api/clients/create", json=intake_form(email=email)).status_code == 201

    response = client.post("/api/clients/create", json=intake_form(email=email))

    assert response.status_code == 429
    assert response.get_json()["error"] == "RATE_LIMIT_EXCEEDED"
    assert store.count(CLIENTS) == 3


def test_rate_limit_ignores_submissions_outside_window(client, clock, intake_form):
    email = "patient@example.com"
    for _ in range(3):
        client.post("/api/clients/create", json=intake_form(email=email))

    clock.advance(hours=24, minutes=1)

    assert client.post("/api/clients/create", json=intake_form(email=email)).status_code == 201


def test_rate_limit_matches_email_case_insensitively(client, intake_form):
    for _ in range(3):
        client.post("/api/clients/create", json=intake_form(email="Mixed@Example.com"))

    response = client.post("/api/clients/create", json=intake_form(email="mixed@example.com"))

    assert response.status_code == 429


def test_attorney_submissions_are_not_rate_limited(client, intake_form, attorney_headers):
    email = "busy@example.com"
    for _ in range(5):
        response = client.post("/api/clients/create", json=intake_form(email=email), headers=attorney_headers)
        assert response.status_code == 201


def test_contact_sync_links_resource_name(client, store, contacts, intake_form):
    response = client.post("/api/clients/create", json=intake_form(firstName="Jane", lastName="Doe"))

    client_id = response.get_json()["clientId"]
    assert len(contacts.created) == 1
    synced_id, synced_doc = contacts.created[0]
    assert synced_id == client_id
    assert synced_doc["firstName"] == "Jane"
    assert store.get(CLIENTS, client_id)["googleContactResourceName"] == "people/c1"


def test_contact_sync_failure_does_not_fail_intake(client, store, contacts, intake_form):
    contacts.fail = True

    response = client.post("/api/clients/create", json=intake_form())

    assert response.status_code == 201
    stored = store.get(CLIENTS, response.get_json()["clientId"])
    assert "googleContactResourceName" not in stored


def test_failed_commit_leaves_nothing_behind(client, store, intake_form, monkeypatch):
    def broken_commit(writes):
        raise RuntimeError("commit failed")

    monkeypatch.setattr(store, "commit_batch", broken_commit)

    response = client.post("/api/clients/create", json=intake_form())

    assert response.status_code == 500
    assert response.get_json() == {
        "success": False,
        "error": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
    }
    assert store.count(CLIENTS) == 0
    assert store.count(CASES) == 0
    assert store.count(CLIENT_CASES) == 0


def test_service_raises_rate_limit_error(services, intake_form):
    form = intake_form(email="svc@example.com")
    for _ in range(3):
        services.clients.submit_intake(dict(form))

    with pytest.raises(RateLimitExceededError):
        services.clients.submit_intake(dict(form))


def test_service_result_reports_contact_sync(services, intake_form):
    result = services.clients.submit_intake(intake_form(), is_attorney_request=True)

    assert result.status == "active"
    assert result.participant_id
    assert result.contact_sync.ok is True
    assert result.contact_sync.value == "people/c1"


def test_service_rejects_blank_required_field(services, intake_form):
    with pytest.raises(ValidationError) as exc_info:
        services.clients.submit_intake(intake_form(firstName="   "))

    assert exc_info.value.fields == ["firstName"]
