"""LLM configuration for the decision classifier (LiteLLM provider settings).

Values are read from the environment; a local .env file is loaded on import.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def get_model_name() -> str:
    """Get the configured classifier model name."""
    return os.environ.get("CLAIMS_CLASSIFIER_MODEL", "gpt-4o-mini").strip()


def get_llm_kwargs() -> dict:
    """Keyword arguments passed through to litellm.completion.

    Uses OPENAI_API_KEY / OPENAI_API_BASE when set so an OpenRouter or gateway endpoint
    can be swapped in without code changes.
    """
    kwargs: dict = {"model": get_model_name()}
    api_key = os.environ.get("OPENAI_API_KEY", "").strip()
    base = os.environ.get("OPENAI_API_BASE", "").strip()
    if api_key:
        kwargs["api_key"] = api_key
    if base:
        kwargs["api_base"] = base
    logger.debug(
        "Classifier LLM: model=%s, base_url=%s",
        kwargs["model"],
        base if base else "default",
    )
    return kwargs
