"""Image summarization with an ordered fallback over Gemini vision models."""

from collections.abc import Callable
from functools import lru_cache
from typing import Protocol

from google import genai
from google.genai import types

from aether.ai.gemini import get_gemini_client
from aether.ai.prompts import IMAGE_DESCRIPTION_PROMPT
from aether.config import settings
from aether.core.errors import ProviderError, ProviderErrorKind, classify_provider_error
from aether.core.logging import get_logger
from aether.services.text_normalizer import truncate

logger = get_logger(__name__)


class VisionModel(Protocol):
    """Handle to one multimodal model."""

    model_id: str

    async def generate_content(self, image_bytes: bytes, mime_type: str, prompt: str) -> str: ...


class GeminiVisionModel:
    """Vision model handle backed by the google-genai async client."""

    def __init__(self, client: genai.Client, model_id: str):
        self._client = client
        self.model_id = model_id

    async def generate_content(self, image_bytes: bytes, mime_type: str, prompt: str) -> str:
        """Send inline image data plus the prompt; raise ProviderError on failure."""
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_id,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    prompt,
                ],
            )
        except Exception as e:
            raise ProviderError(classify_provider_error(e), str(e), model=self.model_id) from e
        return response.text or ""


class VisionModelCache:
    """Model handles keyed by model id, built on first use."""

    def __init__(self, factory: Callable[[str], VisionModel]):
        self._factory = factory
        self._handles: dict[str, VisionModel] = {}

    def get(self, model_id: str) -> VisionModel:
        handle = self._handles.get(model_id)
        if handle is None:
            handle = self._factory(model_id)
            self._handles[model_id] = handle
        return handle

    def discard(self, model_id: str) -> None:
        self._handles.pop(model_id, None)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._handles


class VisionSummarizer:
    """Describe images for the advisor context.

    Candidates are tried most-capable first. A model reported as unavailable is
    dropped from the cache and the next candidate is tried; any other failure
    ends the attempt without a summary.
    """

    def __init__(
        self,
        api_key: str,
        candidates: list[str],
        max_chars: int,
        model_factory: Callable[[str], VisionModel] | None = None,
    ):
        self.api_key = api_key
        self.candidates = list(candidates)
        self.max_chars = max_chars
        self._model_factory = model_factory
        self._cache: VisionModelCache | None = None
        self._missing_key_logged = False

    @property
    def model_cache(self) -> VisionModelCache:
        if self._cache is None:
            factory = self._model_factory
            if factory is None:
                client = get_gemini_client(self.api_key)
                factory = lambda model_id: GeminiVisionModel(client, model_id)  # noqa: E731
            self._cache = VisionModelCache(factory)
        return self._cache

    async def describe_image(self, image_bytes: bytes, mime_type: str) -> str | None:
        """Summarize an image, or return None when no summary is available.

        Args:
            image_bytes: Raw image bytes
            mime_type: Declared image MIME type

        Returns:
            Normalized, length-bounded summary text, or None
        """
        if not self.api_key:
            if not self._missing_key_logged:
                logger.warning(
                    "vision_summary_disabled",
                    reason="GOOGLE_API_KEY is not configured",
                )
                self._missing_key_logged = True
            return None

        unavailable: list[str] = []
        for model_id in self.candidates:
            try:
                model = self.model_cache.get(model_id)
                text = await model.generate_content(image_bytes, mime_type, IMAGE_DESCRIPTION_PROMPT)
            except Exception as e:
                kind = classify_provider_error(e)
                if kind == ProviderErrorKind.MODEL_UNAVAILABLE:
                    self.model_cache.discard(model_id)
                    unavailable.append(model_id)
                    logger.info("vision_model_unavailable", model=model_id, error=str(e))
                    continue
                logger.error(
                    "vision_summary_failed",
                    model=model_id,
                    kind=kind.value,
                    error=str(e),
                )
                return None

            if not text.strip():
                logger.info("vision_summary_empty", model=model_id)
                return None

            logger.info("vision_summary_completed", model=model_id, chars=len(text))
            return truncate(text, self.max_chars)

        logger.warning("vision_models_exhausted", candidates=unavailable)
        return None


@lru_cache
def get_vision_summarizer() -> VisionSummarizer:
    """Process-wide summarizer, injected into request handlers."""
    return VisionSummarizer(
        api_key=settings.google_api_key,
        candidates=settings.vision_model_candidates_list,
        max_chars=settings.max_attachment_context_chars,
    )
