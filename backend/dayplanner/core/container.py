from dataclasses import dataclass

from dayplanner.agent.agent_logic import build_llm
from dayplanner.agent.fulfillment import FulfillmentOrchestrator
from dayplanner.agent.generator import ContentGenerator
from dayplanner.core.config import Settings
from dayplanner.services.intake_store import IntakeStore
from dayplanner.services.mailer import DeliveryDispatcher
from dayplanner.services.payments import PaymentGateway
from dayplanner.services.renderer import DocumentRenderer

@dataclass
class Services:
    """Process-wide collaborators, built once at startup and handed to the routes."""
    settings: Settings
    store: IntakeStore
    payments: PaymentGateway
    generator: ContentGenerator
    renderer: DocumentRenderer
    dispatcher: DeliveryDispatcher
    orchestrator: FulfillmentOrchestrator

def build_services(settings: Settings) -> Services:
    store = IntakeStore(ttl_seconds=settings.INTAKE_TTL_SECONDS)
    payments = PaymentGateway(
        api_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        price_cents=settings.CHECKOUT_PRICE_CENTS,
        currency=settings.CHECKOUT_CURRENCY,
        frontend_url=settings.FRONTEND_URL,
    )
    generator = ContentGenerator(build_llm(settings), timeout_seconds=settings.GENERATION_TIMEOUT_SECONDS)
    renderer = DocumentRenderer(chromium_sandbox=settings.RENDER_CHROMIUM_SANDBOX)
    dispatcher = DeliveryDispatcher(
        sender_email=settings.GMAIL_SENDER_EMAIL,
        app_password=settings.GMAIL_APP_PASSWORD,
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    )
    orchestrator = FulfillmentOrchestrator(
        store=store,
        generator=generator,
        renderer=renderer,
        dispatcher=dispatcher,
        render_timeout=settings.RENDER_TIMEOUT_SECONDS,
        delivery_timeout=settings.DELIVERY_TIMEOUT_SECONDS,
        max_attempts=settings.STAGE_MAX_ATTEMPTS,
        initial_delay=settings.RETRY_INITIAL_DELAY_SECONDS,
    )
    return Services(
        settings=settings,
        store=store,
        payments=payments,
        generator=generator,
        renderer=renderer,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
    )
