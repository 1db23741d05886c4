"""Operational endpoints for exercising each provider by hand. Not part of the payment flow."""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import ValidationError
from dayplanner.agent.generator import GenerationError, extract_json
from dayplanner.agent.prompts import fill_prompt_template
from dayplanner.api.deps import get_services
from dayplanner.core.config import logger
from dayplanner.core.container import Services
from dayplanner.core.errors import DayPlannerError, SessionNotFound
from dayplanner.schemas.itinerary import DiagnosticRequest, PendingRequest

router = APIRouter(tags=["Diagnostics"])

def _to_request(form: DiagnosticRequest) -> PendingRequest:
    try:
        return PendingRequest(session_id="diagnostic", **form.model_dump(exclude={"custom_prompt"}))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=[err["msg"] for err in e.errors()])

@router.get("/test")
async def test_llm_connection(services: Services = Depends(get_services)):
    try:
        reply = await services.generator.complete("Say 'Hello from Gemini!'")
    except Exception as e:
        logger.error(f"[TEST] LLM connection test failed: {e}")
        raise HTTPException(status_code=500, detail=f"LLM test failed: {e}")
    return {"status": "ok", "llm": reply, "timestamp": datetime.now(timezone.utc).isoformat()}

@router.post("/test-email")
async def test_email(form: DiagnosticRequest, services: Services = Depends(get_services)):
    """Generates, renders and emails an itinerary for the posted form without a payment."""
    request = _to_request(form)
    logger.info(f"[TEST] Manual test-email trigger for {request.email}")
    try:
        itinerary = await services.generator.generate(request)
        document = await services.renderer.render(itinerary)
        await services.dispatcher.send(request.email, document, itinerary)
    except DayPlannerError as e:
        logger.error(f"[TEST] Failed to send test email: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "ok", "message": "Email sent (if configured correctly)"}

@router.post("/test-llm")
async def test_llm(form: DiagnosticRequest, services: Services = Depends(get_services)):
    """Returns the raw model response for the form (or `customPrompt`) and whether it parses."""
    prompt = form.custom_prompt or fill_prompt_template(services.generator.template, _to_request(form))
    try:
        raw = await services.generator.complete(prompt)
    except Exception as e:
        logger.error(f"[TEST-LLM] Failed to query model: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if not raw:
        raise HTTPException(status_code=500, detail="No response from the model")
    try:
        parsed = extract_json(raw)
    except GenerationError as e:
        return {"status": "success", "rawResponse": raw, "parseError": str(e), "prompt": prompt}
    return {"status": "success", "rawResponse": raw, "parsedResponse": parsed, "prompt": prompt}

@router.get("/test-renderer")
async def test_renderer(services: Services = Depends(get_services)):
    try:
        pdf = await services.renderer.render_html("<h1>Renderer Test</h1>")
    except DayPlannerError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=test.pdf"},
    )

@router.post("/fulfillment/{session_id}/replay")
async def replay_fulfillment(session_id: str, services: Services = Depends(get_services)):
    """Re-runs a failed fulfillment from the request it was started with."""
    try:
        result = await services.orchestrator.replay(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"No failed run recorded for session {session_id}")
    return result.model_dump(mode="json")
