"""
HTTP surface: checkout creation, the webhook signature gate, duplicate notifications and health.
Uses a TestClient over an app built with in-memory collaborators.
"""
import runpy
from unittest.mock import MagicMock, patch

import pytest
import stripe
from fastapi.testclient import TestClient

from conftest import SESSION_ID, WEBHOOK_SECRET, checkout_completed_payload, sign_payload
from dayplanner.agent.fulfillment import FulfillmentOrchestrator
from dayplanner.core.config import Settings
from dayplanner.core.container import Services
from dayplanner.core.errors import RenderFailure
from dayplanner.services.intake_store import IntakeStore
from dayplanner.services.payments import PaymentGateway
import main
from main import create_app

CHECKOUT_FORM = {
    "city": "Paris",
    "date": "2025-06-01",
    "start": "09:00",
    "end": "11:00",
    "interests": ["Food"],
    "email": "a@b.com",
}
CREATE_SESSION = "dayplanner.services.payments.stripe.checkout.Session.create"


@pytest.fixture
def services(fake_generator, fake_renderer, fake_dispatcher):
    settings = Settings(
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        GOOGLE_API_KEY="",
        GMAIL_SENDER_EMAIL="sender@example.com",
        GMAIL_APP_PASSWORD="pw",
        ENABLE_DIAGNOSTICS=True,
    )
    store = IntakeStore()
    orchestrator = FulfillmentOrchestrator(store, fake_generator, fake_renderer, fake_dispatcher, initial_delay=0)
    return Services(
        settings=settings,
        store=store,
        payments=PaymentGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET),
        generator=fake_generator,
        renderer=fake_renderer,
        dispatcher=fake_dispatcher,
        orchestrator=orchestrator,
    )


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


def _post_webhook(client, payload, signature):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post("/api/v1/webhook", content=payload, headers=headers)


def _checkout(client, services, session_id=SESSION_ID):
    session = MagicMock(id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}")
    with patch(CREATE_SESSION, return_value=session):
        return client.post("/api/v1/checkout", json=CHECKOUT_FORM)


def test_checkout_stores_pending_request_without_running_pipeline(client, services, fake_dispatcher):
    response = _checkout(client, services)

    assert response.status_code == 200
    assert response.json() == {"url": f"https://checkout.stripe.com/c/pay/{SESSION_ID}"}
    assert SESSION_ID in services.store
    stored = services.store.take(SESSION_ID)
    assert stored.session_id == SESSION_ID
    assert stored.interests == ["Food"]
    fake_dispatcher.send.assert_not_awaited()


def test_checkout_without_email_is_rejected_before_stripe(client, services):
    form = {k: v for k, v in CHECKOUT_FORM.items() if k != "email"}
    with patch(CREATE_SESSION) as create:
        response = client.post("/api/v1/checkout", json=form)
    assert response.status_code == 400
    assert response.json()["detail"] == "Email is required"
    create.assert_not_called()
    assert len(services.store) == 0


@pytest.mark.parametrize(
    "override",
    [{"email": "not-an-email"}, {"interests": []}],
    ids=["bad-email", "no-interests"],
)
def test_checkout_with_invalid_form_is_rejected(client, override):
    with patch(CREATE_SESSION) as create:
        response = client.post("/api/v1/checkout", json={**CHECKOUT_FORM, **override})
    assert response.status_code == 422
    create.assert_not_called()


def test_checkout_stripe_failure_returns_500(client, services):
    with patch(CREATE_SESSION, side_effect=stripe.APIConnectionError("down")):
        response = client.post("/api/v1/checkout", json=CHECKOUT_FORM)
    assert response.status_code == 500
    assert len(services.store) == 0


@pytest.mark.parametrize(
    "signature",
    [None, "t=1,v1=bad", sign_payload(checkout_completed_payload(), secret="whsec_wrong")],
    ids=["missing", "garbage", "wrong-secret"],
)
def test_webhook_with_bad_signature_is_rejected(client, services, fake_generator, signature):
    _checkout(client, services)

    response = _post_webhook(client, checkout_completed_payload(), signature)

    assert response.status_code == 400
    assert SESSION_ID in services.store
    fake_generator.generate.assert_not_awaited()


def test_duplicate_webhook_dispatches_exactly_one_email(client, services, fake_dispatcher):
    _checkout(client, services)
    payload = checkout_completed_payload()

    first = _post_webhook(client, payload, sign_payload(payload))
    second = _post_webhook(client, payload, sign_payload(payload))

    assert first.status_code == 200 and first.json() == {"received": True}
    assert second.status_code == 200 and second.json() == {"received": True}
    assert fake_dispatcher.send.await_count == 1
    assert SESSION_ID not in services.store


def test_webhook_acknowledges_even_when_pipeline_fails(client, services, fake_renderer, fake_dispatcher):
    _checkout(client, services)
    fake_renderer.render.side_effect = RenderFailure("no browser")
    payload = checkout_completed_payload()

    response = _post_webhook(client, payload, sign_payload(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    fake_dispatcher.send.assert_not_awaited()
    assert SESSION_ID in services.orchestrator.failed_runs


def test_webhook_for_unknown_session_is_acknowledged(client, fake_generator):
    payload = checkout_completed_payload(session_id="cs_unknown")
    response = _post_webhook(client, payload, sign_payload(payload))
    assert response.status_code == 200
    fake_generator.generate.assert_not_awaited()


def test_health_reports_configured_providers(client, services):
    _checkout(client, services)
    body = client.get("/api/v1/health").json()
    assert body["status"] == "ok"
    assert body["services"] == {"stripe": True, "llm": False, "email": True}
    assert body["pending_requests"] == 1


def test_replay_endpoint_reruns_failed_run(client, services, fake_renderer, fake_dispatcher):
    _checkout(client, services)
    fake_renderer.render.side_effect = RenderFailure("no browser")
    payload = checkout_completed_payload()
    _post_webhook(client, payload, sign_payload(payload))

    fake_renderer.render.side_effect = None
    response = client.post(f"/api/v1/fulfillment/{SESSION_ID}/replay")

    assert response.status_code == 200
    assert response.json()["state"] == "done"
    fake_dispatcher.send.assert_awaited_once()
    assert client.post(f"/api/v1/fulfillment/{SESSION_ID}/replay").status_code == 404


def test_test_email_runs_pipeline_without_payment(client, fake_dispatcher):
    response = client.post("/api/v1/test-email", json=CHECKOUT_FORM)
    assert response.status_code == 200
    assert fake_dispatcher.send.await_args.args[0] == "a@b.com"


def test_test_llm_reports_parse_error(client, fake_generator):
    fake_generator.complete.return_value = "not json"
    response = client.post("/api/v1/test-llm", json={**CHECKOUT_FORM, "customPrompt": "Say hi"})
    body = response.json()
    assert response.status_code == 200
    assert body["prompt"] == "Say hi"
    assert body["rawResponse"] == "not json"
    assert "parseError" in body


def test_diagnostics_are_not_mounted_by_default(services):
    services.settings = services.settings.model_copy(update={"ENABLE_DIAGNOSTICS": False})
    client = TestClient(create_app(services))
    assert client.post("/api/v1/test-email", json=CHECKOUT_FORM).status_code == 404


def test_running_main_serves_app_with_uvicorn():
    with patch("uvicorn.run") as run:
        runpy.run_path(main.__file__, run_name="__main__")
    run.assert_called_once_with("main:app", host="0.0.0.0", port=8000)
