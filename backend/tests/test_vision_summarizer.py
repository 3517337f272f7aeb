"""Tests for the vision summarizer's model fallback and caching."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from aether.ai.vision import GeminiVisionModel, VisionModelCache, VisionSummarizer
from aether.core.errors import ProviderError, ProviderErrorKind
from aether.services.text_normalizer import TRUNCATION_SUFFIX


class FakeModel:
    def __init__(self, model_id, outcome):
        self.model_id = model_id
        self.outcome = outcome
        self.calls = 0

    async def generate_content(self, image_bytes, mime_type, prompt):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class NotFoundError(Exception):
    status = 404


def make_summarizer(outcomes, api_key="test-key", max_chars=4000):
    """Summarizer whose candidate models behave as given, in dict order."""
    created = {}

    def factory(model_id):
        created[model_id] = FakeModel(model_id, outcomes[model_id])
        return created[model_id]

    summarizer = VisionSummarizer(
        api_key=api_key,
        candidates=list(outcomes),
        max_chars=max_chars,
        model_factory=factory,
    )
    return summarizer, created


class TestVisionModelCache:
    def test_builds_once_per_model(self):
        factory = MagicMock(side_effect=lambda model_id: object())
        cache = VisionModelCache(factory)
        first = cache.get("m1")
        assert cache.get("m1") is first
        assert factory.call_count == 1
        assert "m1" in cache

    def test_discard(self):
        cache = VisionModelCache(lambda model_id: object())
        cache.get("m1")
        cache.discard("m1")
        cache.discard("never-added")
        assert "m1" not in cache


class TestDescribeImage:
    @pytest.mark.asyncio
    async def test_first_candidate_success_stops_iteration(self):
        summarizer, created = make_summarizer({"m1": "A pie chart of expenses", "m2": "unused"})
        summary = await summarizer.describe_image(b"png-bytes", "image/png")
        assert summary == "A pie chart of expenses"
        assert "m2" not in created

    @pytest.mark.asyncio
    async def test_falls_back_when_model_unavailable(self):
        summarizer, created = make_summarizer(
            {
                "m1": ProviderError(ProviderErrorKind.MODEL_UNAVAILABLE, "not found", model="m1"),
                "m2": "Bank statement showing a $500 balance",
            }
        )
        summary = await summarizer.describe_image(b"png-bytes", "image/png")
        assert summary == "Bank statement showing a $500 balance"
        assert "m1" not in summarizer.model_cache
        assert "m2" in summarizer.model_cache

    @pytest.mark.asyncio
    async def test_raw_404_error_also_falls_back(self):
        summarizer, created = make_summarizer({"m1": NotFoundError("gone"), "m2": "Receipt"})
        assert await summarizer.describe_image(b"img", "image/jpeg") == "Receipt"

    @pytest.mark.asyncio
    async def test_other_errors_abort_without_trying_next(self):
        summarizer, created = make_summarizer(
            {
                "m1": ProviderError(ProviderErrorKind.RATE_LIMITED, "quota exceeded"),
                "m2": "never returned",
            }
        )
        summary = await summarizer.describe_image(b"png-bytes", "image/png")
        assert summary is None
        assert "m2" not in created
        assert created["m1"].calls == 1

    @pytest.mark.asyncio
    async def test_failed_model_stays_cached_on_non_unavailable_error(self):
        summarizer, _ = make_summarizer({"m1": ProviderError(ProviderErrorKind.TRANSIENT, "timeout")})
        await summarizer.describe_image(b"img", "image/png")
        assert "m1" in summarizer.model_cache

    @pytest.mark.asyncio
    async def test_all_unavailable_returns_none(self):
        summarizer, created = make_summarizer(
            {
                "m1": ProviderError(ProviderErrorKind.MODEL_UNAVAILABLE, "gone"),
                "m2": ProviderError(ProviderErrorKind.MODEL_UNAVAILABLE, "gone"),
            }
        )
        assert await summarizer.describe_image(b"img", "image/png") is None
        assert created["m2"].calls == 1

    @pytest.mark.asyncio
    async def test_empty_response_returns_none(self):
        summarizer, created = make_summarizer({"m1": "   ", "m2": "unused"})
        assert await summarizer.describe_image(b"img", "image/png") is None
        assert "m2" not in created

    @pytest.mark.asyncio
    async def test_summary_is_normalized_and_truncated(self):
        summarizer, _ = make_summarizer({"m1": "word   " * 100}, max_chars=20)
        summary = await summarizer.describe_image(b"img", "image/png")
        assert summary.endswith(TRUNCATION_SUFFIX)
        assert len(summary) == 20 + len(TRUNCATION_SUFFIX)
        assert "  " not in summary

    @pytest.mark.asyncio
    async def test_model_handles_reused_across_calls(self):
        summarizer, created = make_summarizer({"m1": "Chart"})
        await summarizer.describe_image(b"a", "image/png")
        first = created["m1"]
        await summarizer.describe_image(b"b", "image/png")
        assert first.calls == 2


class TestMissingCredential:
    @pytest.mark.asyncio
    async def test_no_key_is_a_noop_logged_once(self):
        summarizer, created = make_summarizer({"m1": "unused"}, api_key="")
        with patch("aether.ai.vision.logger") as mock_logger:
            assert await summarizer.describe_image(b"img", "image/png") is None
            assert await summarizer.describe_image(b"img", "image/png") is None
        assert mock_logger.warning.call_count == 1
        assert created == {}


class TestGeminiVisionModel:
    @pytest.mark.asyncio
    async def test_returns_response_text(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=MagicMock(text="A table"))
        model = GeminiVisionModel(client, "gemini-test")

        text = await model.generate_content(b"img", "image/png", "describe")

        assert text == "A table"
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"][1] == "describe"

    @pytest.mark.asyncio
    async def test_wraps_errors_with_kind(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(side_effect=NotFoundError("no such model"))
        model = GeminiVisionModel(client, "gemini-old")

        with pytest.raises(ProviderError) as exc_info:
            await model.generate_content(b"img", "image/png", "describe")

        assert exc_info.value.kind == ProviderErrorKind.MODEL_UNAVAILABLE
        assert exc_info.value.model == "gemini-old"

    @pytest.mark.asyncio
    async def test_none_text_becomes_empty(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=MagicMock(text=None))
        model = GeminiVisionModel(client, "gemini-test")
        assert await model.generate_content(b"img", "image/png", "describe") == ""


class TestDefaultFactory:
    @pytest.mark.asyncio
    async def test_builds_gemini_handles_from_one_client(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=MagicMock(text="Invoice total $120"))
        summarizer = VisionSummarizer(api_key="key", candidates=["gemini-a"], max_chars=4000)

        with patch("aether.ai.vision.get_gemini_client", return_value=client) as mock_get_client:
            summary = await summarizer.describe_image(b"img", "image/png")

        assert summary == "Invoice total $120"
        mock_get_client.assert_called_once_with("key")
        assert isinstance(summarizer.model_cache.get("gemini-a"), GeminiVisionModel)
