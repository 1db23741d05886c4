from datetime import datetime, timezone
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import ValidationError
from dayplanner.api.deps import get_services
from dayplanner.core.config import logger
from dayplanner.core.container import Services
from dayplanner.core.errors import CheckoutFailure, SignatureInvalid, WebhookNotConfigured
from dayplanner.schemas.itinerary import (
    CheckoutRequest, CheckoutResponse, HealthResponse, PendingRequest, WebhookAck
)

router = APIRouter()

def _validation_detail(error: ValidationError) -> list:
    return [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in error.errors()]

@router.get("/health", response_model=HealthResponse, tags=["Health"])
def health(services: Services = Depends(get_services)):
    """Reports which providers are configured and how many checkouts are awaiting payment."""
    settings = services.settings
    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        services={
            "stripe": settings.stripe_configured,
            "llm": settings.llm_configured,
            "email": settings.email_configured,
        },
        pending_requests=len(services.store),
    )

@router.post("/checkout", response_model=CheckoutResponse, tags=["Checkout"])
async def create_checkout(form: CheckoutRequest, services: Services = Depends(get_services)):
    """
    Creates a Stripe checkout session for a day plan and remembers the form until payment is confirmed.
    Returns the Stripe-hosted URL the client should redirect to.
    """
    if not form.email:
        raise HTTPException(status_code=400, detail="Email is required")

    try:
        draft = PendingRequest(session_id="", **form.model_dump())
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=_validation_detail(e))

    try:
        session_id, url = await services.payments.create_checkout_session(draft)
    except CheckoutFailure:
        raise HTTPException(status_code=500, detail="Stripe session creation failed")

    services.store.put(session_id, draft.model_copy(update={"session_id": session_id}))
    return CheckoutResponse(url=url)

@router.post("/webhook", response_model=WebhookAck, tags=["Payments"])
async def stripe_webhook(request: Request, background_tasks: BackgroundTasks, services: Services = Depends(get_services)):
    """
    Receives Stripe notifications. The signature is checked before anything else;
    once it is valid the notification is always acknowledged, whatever happens downstream.
    """
    logger.info("[STRIPE] Webhook received")
    payload = await request.body()
    try:
        event = services.payments.verify(payload, request.headers.get("stripe-signature"))
    except WebhookNotConfigured:
        raise HTTPException(status_code=500, detail="Webhook not configured")
    except SignatureInvalid as e:
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    if event.is_fulfillable:
        background_tasks.add_task(services.orchestrator.handle_event, event)
    else:
        logger.info(f"[STRIPE] Acknowledged {event.type.value} event without fulfillment")
    return WebhookAck()
