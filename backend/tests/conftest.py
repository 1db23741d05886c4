"""
Pytest configuration and shared fixtures for the fulfillment pipeline tests.
"""
import hashlib
import hmac
import json
import sys
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

backend_root = Path(__file__).resolve().parent.parent
if str(backend_root) not in sys.path:
    sys.path.insert(0, str(backend_root))

import pytest

from dayplanner.schemas.itinerary import GeneratedItinerary, ItineraryItem, PendingRequest, RenderedDocument

WEBHOOK_SECRET = "whsec_test_secret"
SESSION_ID = "cs_test_paris_001"


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Builds a Stripe-Signature header the way Stripe does (HMAC-SHA256 over 't.payload')."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_payload(session_id: str = SESSION_ID, email: str = "a@b.com") -> bytes:
    return json.dumps({
        "id": "evt_test_001",
        "object": "event",
        "type": "checkout.session.completed",
        "livemode": False,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "customer_email": email,
                "metadata": {"email": email},
            }
        },
    }).encode("utf-8")


@pytest.fixture
def pending_request():
    return PendingRequest(
        session_id=SESSION_ID,
        city="Paris",
        date="2025-06-01",
        start="09:00",
        end="11:00",
        interests=["Food"],
        email="a@b.com",
    )


@pytest.fixture
def itinerary():
    return GeneratedItinerary(
        city="Paris",
        date="2025-06-01",
        items=[
            ItineraryItem(
                time="09:00",
                activity="Croissants at Du Pain et des Idees",
                location="34 Rue Yves Toudic (10th)",
                description="Flaky pastries in a historic bakery.",
                duration="45 minutes",
                cost="$12",
                maps_url="https://www.google.com/maps/search/?api=1&query=Du+Pain+et+des+Idees+Paris",
            ),
            ItineraryItem(
                time="10:00",
                activity="Walk along Canal Saint-Martin",
                location="Canal Saint-Martin",
                description="Stroll past iron footbridges.",
                duration="1 hour",
            ),
        ],
        total_cost="$20-40",
        tips=["Book ahead on weekends"],
    )


@pytest.fixture
def document():
    return RenderedDocument(content=b"%PDF-1.4 test", filename="itinerary-Paris-2025-06-01.pdf")


@pytest.fixture
def fake_generator(itinerary):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=itinerary)
    generator.complete = AsyncMock(return_value="Hello from Gemini!")
    generator.template = "${city}"
    return generator


@pytest.fixture
def fake_renderer(document):
    renderer = MagicMock()
    renderer.render = AsyncMock(return_value=document)
    renderer.render_html = AsyncMock(return_value=document.content)
    return renderer


@pytest.fixture
def fake_dispatcher():
    dispatcher = MagicMock()
    dispatcher.send = AsyncMock(return_value=None)
    return dispatcher
