import logging
from typing import Any, Optional

from groq import AsyncGroq

from .config import Settings

logger = logging.getLogger(__name__)


def get_groq_client(settings: Settings) -> Optional[AsyncGroq]:
    """
    Attempts to return an async Groq client.
    Returns None if:
    - USE_GROQ is not enabled.
    - The API key is missing.
    - Initialization fails for any reason.

    This function NEVER raises an exception; callers treat None as "LLM unavailable".
    """
    if not settings.use_groq:
        return None

    if not settings.groq_api_key:
        logger.warning("USE_GROQ is true, but GROQ_API_KEY is missing. Falling back to deterministic behaviour.")
        return None

    try:
        return AsyncGroq(api_key=settings.groq_api_key)
    except Exception as e:
        logger.error(f"Failed to initialize Groq client: {e}. Falling back to deterministic behaviour.")
        return None


async def create_chat_completion(client: Any, settings: Settings, **params) -> Any:
    """
    Chat completion with a model fallback strategy.
    The primary model is tried first; any error switches to the fallback model once.
    """
    try:
        logger.info(f"[LLM] Trying primary model: {settings.primary_model}")
        return await client.chat.completions.create(model=settings.primary_model, **params)
    except Exception as e:
        logger.warning(f"[LLM] Primary model failed, switching to fallback: {settings.fallback_model} ({e})")
        return await client.chat.completions.create(model=settings.fallback_model, **params)
