"""Shared Gemini client initialization."""

from google import genai
from google.genai import types

from aether.config import get_settings


def get_gemini_client(api_key: str) -> genai.Client:
    """Get a Gemini client using the configured request timeout."""
    settings = get_settings()
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(timeout=settings.llm_request_timeout * 1000),
    )
