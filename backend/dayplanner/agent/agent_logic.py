from typing import Optional
from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from dayplanner.core.config import Settings, logger

def build_llm(settings: Settings) -> Optional[BaseChatModel]:
    """
    Creates the Gemini chat model used for itinerary generation.
    Returns None when no API key is configured; the generator then always serves the fallback plan.
    """
    if not settings.GOOGLE_API_KEY:
        logger.warning("GOOGLE_API_KEY not found. Itinerary generation will use the fallback plan.")
        return None
    return ChatGoogleGenerativeAI(
        model=settings.LLM_MODEL,
        google_api_key=settings.GOOGLE_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
    )
