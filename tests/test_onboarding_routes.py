"""
Tests for the Onboarding Web Routes

Tests cover:
- Session cookie signing
- HTML step flow (POST/redirect/GET)
- JSON API for single field changes
- Submission success and failure notices
"""

import pytest
from fastapi.testclient import TestClient

from core.onboarding import (
    FAILURE_MESSAGE,
    SUCCESS_MESSAGE,
    InMemoryRecordStore,
    get_session_repository,
    reset_record_store,
    reset_session_repository,
    set_record_store,
)
from web.app import create_app
from web.session_cookie import (
    SESSION_COOKIE_NAME,
    get_session_secret,
    sign_session_id,
    verify_session_id,
)


# =============================================================================
# Fixtures
# =============================================================================

STEP_ONE = {
    "step": "1",
    "name": "Ana Ruiz",
    "phone": "+34600000000",
    "email": "ana@x.com",
    "country": "España",
    "language": "Español",
    "action": "next",
}

STEP_TWO = {
    "step": "2",
    "address": "Calle Mayor 1, Madrid",
    "property_type": "piso",
    "rooms": "2",
    "bathrooms": "1",
    "guests": "4",
    "airbnb_published": "no",
    "airbnb_link": "",
    "action": "next",
}

STEP_THREE = {
    "step": "3",
    "services": ["Gestión completa"],
    "rules": "",
    "comments": "Llaves en conserjería",
    "action": "next",
}


@pytest.fixture
def store():
    reset_session_repository()
    store = InMemoryRecordStore()
    set_record_store(store)
    yield store
    reset_record_store()
    reset_session_repository()


@pytest.fixture
def client(store):
    return TestClient(create_app())


@pytest.fixture
def client_on_step_four(client):
    for data in (STEP_ONE, STEP_TWO, STEP_THREE):
        client.post("/onboarding/step", data=data)
    assert client.get("/onboarding/api/state").json()["step"] == 4
    return client


# =============================================================================
# Session Cookie
# =============================================================================


class TestSessionCookie:
    """Tests for signed session IDs."""

    def test_roundtrip(self):
        token = sign_session_id("abc123", "secret")

        assert verify_session_id(token, "secret") == "abc123"

    def test_tampered_rejected(self):
        token = sign_session_id("abc123", "secret")
        session_id, signature = token.rsplit(".", 1)

        assert verify_session_id(f"other.{signature}", "secret") is None
        assert verify_session_id(token, "another-secret") is None

    def test_malformed_rejected(self):
        assert verify_session_id("no-signature", "secret") is None
        assert verify_session_id(".sig", "secret") is None

    def test_cookie_set_on_first_visit(self, client):
        response = client.get("/onboarding/")

        assert SESSION_COOKIE_NAME in response.cookies


# =============================================================================
# HTML Flow
# =============================================================================


class TestHtmlFlow:
    """Tests for the server-rendered screens."""

    def test_first_step_rendered(self, client):
        response = client.get("/onboarding/")

        assert response.status_code == 200
        assert "Paso 1 de 4" in response.text
        assert "Datos del cliente" in response.text

    def test_valid_step_advances(self, client):
        response = client.post("/onboarding/step", data=STEP_ONE)

        assert response.status_code == 200
        assert "Paso 2 de 4" in response.text

    def test_invalid_step_stays_with_errors(self, client):
        response = client.post("/onboarding/step", data={**STEP_ONE, "email": "a@b"})

        assert "Paso 1 de 4" in response.text
        assert "Email inválido" in response.text

    def test_back_action(self, client):
        client.post("/onboarding/step", data=STEP_ONE)

        response = client.post("/onboarding/step", data={"step": "2", "action": "back"})

        assert "Paso 1 de 4" in response.text

    def test_stale_form_ignored(self, client):
        client.post("/onboarding/step", data=STEP_ONE)

        client.post("/onboarding/step", data={**STEP_ONE, "name": "Otro", "action": "back"})
        state = client.get("/onboarding/api/state").json()

        assert state["data"]["name"] == "Ana Ruiz"
        assert state["step"] == 1

    def test_invalid_action_rejected(self, client):
        response = client.post("/onboarding/step", data={"step": "1", "action": "jump"})

        assert response.status_code == 400

    def test_services_checkboxes(self, client):
        client.post("/onboarding/step", data=STEP_ONE)
        client.post("/onboarding/step", data=STEP_TWO)
        client.post("/onboarding/step", data={**STEP_THREE, "action": "back"})

        # Unchecking everything on step 3 removes the service again
        client.post("/onboarding/step", data=STEP_TWO)
        client.post("/onboarding/step", data={"step": "3", "rules": "", "comments": "", "action": "next"})

        assert client.get("/onboarding/api/state").json()["data"]["services"] == []

    def test_full_submission(self, client_on_step_four, store):
        response = client_on_step_four.post(
            "/onboarding/submit", data={"step": "4", "accepted": "on"}
        )

        assert SUCCESS_MESSAGE in response.text
        assert "Paso 1 de 4" in response.text
        assert len(store.rows("clients")) == 1
        assert store.rows("services")[0]["service_name"] == "Gestión completa"
        assert store.rows("properties")[0]["comments"] == "Llaves en conserjería"

        # Notice is shown once
        assert SUCCESS_MESSAGE not in client_on_step_four.get("/onboarding/").text

    def test_submit_without_consent_is_noop(self, client_on_step_four, store):
        response = client_on_step_four.post("/onboarding/submit", data={"step": "4"})

        assert "Paso 4 de 4" in response.text
        assert store.calls == []

    def test_failed_submission_keeps_form(self, client_on_step_four, store):
        store.fail_on("properties")

        response = client_on_step_four.post(
            "/onboarding/submit", data={"step": "4", "accepted": "on"}
        )

        assert FAILURE_MESSAGE in response.text
        assert "Paso 4 de 4" in response.text
        assert len(store.rows("clients")) == 1
        state = client_on_step_four.get("/onboarding/api/state").json()
        assert state["data"]["name"] == "Ana Ruiz"
        assert state["is_submitting"] is False

    def test_reset_discards_form(self, client):
        client.post("/onboarding/step", data=STEP_ONE)

        response = client.post("/onboarding/reset")

        assert "Paso 1 de 4" in response.text
        assert client.get("/onboarding/api/state").json()["data"]["name"] == ""


# =============================================================================
# JSON API
# =============================================================================


class TestJsonApi:
    """Tests for the per-change API."""

    def test_change_returns_revalidated_snapshot(self, client):
        response = client.post("/onboarding/api/change", json={"name": "email", "value": "a@b"})

        body = response.json()
        assert response.status_code == 200
        assert body["data"]["email"] == "a@b"
        assert body["errors"]["email"] == "Email inválido"
        assert body["can_advance"] is False

    def test_scenario_a(self, client):
        for name, value in (("name", "Ana Ruiz"), ("email", "ana@x.com"), ("phone", "+34600000000")):
            client.post("/onboarding/api/change", json={"name": name, "value": value})

        body = client.post("/onboarding/api/next").json()

        assert body["advanced"] is True
        assert body["step"] == 2

    def test_blocked_next(self, client):
        body = client.post("/onboarding/api/next").json()

        assert body["advanced"] is False
        assert set(body["step_errors"]) == {"name", "email", "phone"}

    def test_toggle_service(self, client):
        payload = {"name": "services", "value": "Gestión completa", "kind": "toggle", "checked": True}

        body = client.post("/onboarding/api/change", json=payload).json()

        assert body["data"]["services"] == ["Gestión completa"]

    def test_unknown_field_is_400(self, client):
        response = client.post("/onboarding/api/change", json={"name": "password", "value": "x"})

        assert response.status_code == 400

    def test_invalid_kind_is_422(self, client):
        response = client.post("/onboarding/api/change", json={"name": "name", "kind": "slider"})

        assert response.status_code == 422

    def test_back_from_first_step(self, client):
        assert client.post("/onboarding/api/back").json()["step"] == 1

    def test_submit_without_consent(self, client):
        body = client.post("/onboarding/api/submit").json()

        assert body["outcome"] is None

    def test_consent_from_first_step_does_not_submit(self, client, store):
        client.post(
            "/onboarding/api/change",
            json={"name": "accepted", "kind": "toggle", "checked": True},
        )

        body = client.post("/onboarding/api/submit").json()
        client.post("/onboarding/submit", data={"step": "1", "accepted": "on"})

        assert body["outcome"] is None
        assert body["step"] == 1
        assert body["can_submit"] is False
        assert store.calls == []

    def test_text_change_on_checkbox_is_400(self, client):
        response = client.post("/onboarding/api/change", json={"name": "accepted", "value": "false"})

        assert response.status_code == 400
        assert client.get("/onboarding/api/state").json()["data"]["accepted"] is False

    @pytest.mark.parametrize(
        "path, payload",
        [
            ("/onboarding/api/change", {"name": "rooms", "value": "abc"}),
            ("/onboarding/api/next", None),
            ("/onboarding/api/back", None),
        ],
    )
    def test_changes_while_submitting_are_409(self, client_on_step_four, path, payload):
        token = client_on_step_four.cookies.get(SESSION_COOKIE_NAME)
        session_id = verify_session_id(token, get_session_secret())
        wizard = get_session_repository().get(session_id).wizard
        wizard.is_submitting = True

        response = client_on_step_four.post(path, json=payload)

        assert response.status_code == 409
        assert wizard.state.rooms == "2"
        assert wizard.step == 4

    def test_submit(self, client_on_step_four, store):
        client_on_step_four.post(
            "/onboarding/api/change",
            json={"name": "accepted", "kind": "toggle", "checked": True},
        )

        body = client_on_step_four.post("/onboarding/api/submit").json()

        assert body["outcome"]["success"] is True
        assert body["notice"] == {"kind": "success", "message": SUCCESS_MESSAGE}
        assert body["step"] == 1


# =============================================================================
# Other Pages
# =============================================================================


class TestPages:
    """Tests for health and static pages."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_privacy_page(self, client):
        response = client.get("/privacidad")

        assert response.status_code == 200
        assert "Política de privacidad" in response.text
