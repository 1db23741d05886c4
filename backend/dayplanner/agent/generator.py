import asyncio
import json
import re
from typing import Any, Optional

from langchain_core.language_models import BaseChatModel
from pydantic import ValidationError

from dayplanner.agent.prompts import DEFAULT_ITINERARY_PROMPT, fill_prompt_template
from dayplanner.core.config import logger
from dayplanner.schemas.itinerary import GeneratedItinerary, ItineraryItem, PendingRequest

DEFAULT_TOTAL_COST = "$80-120"


class GenerationError(Exception):
    """Raised internally when the model output cannot be used; never leaves this module."""


def fallback_itinerary(request: PendingRequest) -> GeneratedItinerary:
    """The fixed plan served whenever generation fails, so a paying user always gets something."""
    return GeneratedItinerary(
        city=request.city,
        date=request.date,
        items=[
            ItineraryItem(
                time="09:00",
                activity="Start your day",
                location="City Center",
                description="Begin your adventure in the heart of the city",
                duration="1 hour",
                cost="$0",
            )
        ],
        total_cost="$50-75",
        tips=["Wear comfortable shoes", "Bring a camera"],
    )


def extract_json(raw: str) -> Any:
    """Parses model output as JSON, tolerating Markdown code fences and surrounding chatter."""
    content = raw.strip().replace("```json", "").replace("```", "").strip()
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        json_match = re.search(r"\{.*\}", content, re.DOTALL)
        if not json_match:
            raise GenerationError("No JSON object found in response")
        try:
            return json.loads(json_match.group())
        except json.JSONDecodeError as e:
            raise GenerationError(f"Failed to parse JSON from extracted content: {e}") from e


def parse_itinerary(raw: str, request: PendingRequest) -> GeneratedItinerary:
    """
    Turns a raw model response into a GeneratedItinerary.
    Missing `totalCost` or `tips` are defaulted; missing or unusable `items` is an error.
    """
    if not raw or not raw.strip():
        raise GenerationError("Empty response")

    parsed = extract_json(raw)
    if not isinstance(parsed, dict):
        raise GenerationError("Response is not a JSON object")

    raw_items = parsed.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise GenerationError("Response has no items")

    try:
        items = [ItineraryItem.model_validate(item) for item in raw_items]
    except ValidationError as e:
        raise GenerationError(f"Invalid itinerary item: {e}") from e

    tips = parsed.get("tips") or []
    if not isinstance(tips, list):
        tips = [str(tips)]

    return GeneratedItinerary(
        city=request.city,
        date=request.date,
        items=items,
        total_cost=str(parsed.get("totalCost") or DEFAULT_TOTAL_COST),
        tips=[str(tip) for tip in tips],
    )


class ContentGenerator:
    def __init__(
        self,
        llm: Optional[BaseChatModel],
        template: str = DEFAULT_ITINERARY_PROMPT,
        timeout_seconds: Optional[float] = None,
    ):
        self.llm = llm
        self.template = template
        self.timeout_seconds = timeout_seconds

    async def complete(self, prompt: str) -> str:
        """Sends a prompt to the model and returns its text content."""
        if self.llm is None:
            raise GenerationError("No language model is configured")
        response = await asyncio.wait_for(self.llm.ainvoke(prompt), timeout=self.timeout_seconds)
        content = response.content
        if isinstance(content, list):
            content = "".join(part if isinstance(part, str) else part.get("text", "") for part in content)
        return content or ""

    async def generate(self, request: PendingRequest) -> GeneratedItinerary:
        """
        Generates the itinerary for a request. Never raises: any failure yields the fallback plan.
        """
        prompt = fill_prompt_template(self.template, request)
        try:
            logger.info(f"[LLM] Generating itinerary for {request.city} on {request.date}...")
            raw = await self.complete(prompt)
            logger.debug(f"[LLM] Raw response: {raw}")
            itinerary = parse_itinerary(raw, request)
            logger.info(f"[LLM] Generated itinerary with {len(itinerary.items)} item(s)")
            return itinerary
        except Exception as e:
            logger.error(f"[LLM] Failed to generate or parse itinerary, using fallback: {e!r}")
            return fallback_itinerary(request)
