import re
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from aether.ai.prompts import TITLE_SYSTEM_PROMPT, build_financial_advisor_system_prompt
from aether.config import settings
from aether.core.errors import classify_provider_error
from aether.core.logging import get_logger

logger = get_logger(__name__)

FALLBACK_REPLY = "Sorry, I encountered an error processing your request. Please try again."
DEFAULT_TITLE = "New conversation"
MAX_TITLE_CHARS = 50

_TITLE_STRIP = re.compile(r"[\"'`“”‘’:*#<>\[\]{}|\\]")
GOOGLE_SEARCH_TOOL = {"google_search": {}}


def extract_text_from_content(content: Any) -> str:
    """Extract text content from structured LLM response content.

    Handles plain strings, lists of content blocks (text blocks kept, tool
    blocks skipped) and single dict blocks.
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type") in ("tool_use", "function_call"):
                    continue
                if "text" in item:
                    text_parts.append(str(item["text"]))
            elif isinstance(item, str):
                text_parts.append(item)
        return "".join(text_parts)

    if isinstance(content, dict):
        return str(content.get("text", ""))

    return str(content)


def clean_title(raw: str) -> str:
    """Reduce model output to a single unquoted line of at most 50 characters."""
    lines = [line for line in raw.strip().splitlines() if line.strip()]
    if not lines:
        return ""
    title = _TITLE_STRIP.sub("", lines[0])
    title = " ".join(title.split())
    if len(title) > MAX_TITLE_CHARS:
        title = title[:MAX_TITLE_CHARS].rstrip()
    return title


def to_langchain_messages(messages: list[dict[str, str]]) -> list[BaseMessage]:
    """Map {role, content} dicts onto LangChain message objects."""
    converted: list[BaseMessage] = []
    for message in messages:
        if message["role"] == "assistant":
            converted.append(AIMessage(content=message["content"]))
        else:
            converted.append(HumanMessage(content=message["content"]))
    return converted


class ResponseGenerator:
    """Advisor replies and chat titles via Gemini.

    Provider failures never reach the caller: replies degrade to a fixed
    apology and titles to a default.
    """

    # Cache LLM clients by (model, temperature) to avoid re-creating HTTP clients
    _cache: dict[tuple[str, float | None], BaseChatModel] = {}

    def get_llm(self, model: str, temperature: float | None = None) -> BaseChatModel:
        """Get a Gemini chat model for the given model id."""
        cache_key = (model, temperature)
        if cache_key in self._cache:
            return self._cache[cache_key]

        if not settings.google_api_key:
            raise ValueError("Google API key not configured")

        kwargs: dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        client = ChatGoogleGenerativeAI(
            api_key=settings.google_api_key,
            model=model,
            timeout=float(settings.llm_request_timeout),
            max_retries=settings.llm_max_retries,
            **kwargs,
        )
        self._cache[cache_key] = client
        return client

    async def generate_reply(
        self,
        messages: list[dict[str, str]],
        instructions: str | None = None,
        temperature: float | None = None,
        web_search_enabled: bool = False,
    ) -> str:
        """Generate the assistant reply for an assembled conversation.

        Args:
            messages: Ordered {role, content} dicts, newest user turn last
            instructions: Optional user preferences for the system prompt slot
            temperature: Sampling temperature (defaults to settings)
            web_search_enabled: Attach the Google Search tool

        Returns:
            The reply text, or FALLBACK_REPLY on any provider failure
        """
        if temperature is None:
            temperature = settings.chat_temperature
        try:
            llm = self.get_llm(settings.chat_model, temperature)
            runnable = llm.bind_tools([GOOGLE_SEARCH_TOOL]) if web_search_enabled else llm
            lc_messages = [
                SystemMessage(content=build_financial_advisor_system_prompt(instructions)),
                *to_langchain_messages(messages),
            ]
            response = await runnable.ainvoke(lc_messages)
            text = extract_text_from_content(response.content).strip()
            if not text:
                raise ValueError("Model returned an empty reply")
            return text
        except Exception as e:
            logger.error(
                "reply_generation_failed",
                model=settings.chat_model,
                kind=classify_provider_error(e).value,
                error=str(e),
            )
            return FALLBACK_REPLY

    async def generate_title(self, message: str) -> str:
        """Generate a short chat title from the first user message."""
        try:
            llm = self.get_llm(settings.title_model)
            response = await llm.ainvoke(
                [SystemMessage(content=TITLE_SYSTEM_PROMPT), HumanMessage(content=message)]
            )
            return clean_title(extract_text_from_content(response.content))
        except Exception as e:
            logger.warning(
                "title_generation_failed",
                model=settings.title_model,
                kind=classify_provider_error(e).value,
                error=str(e),
            )
            return DEFAULT_TITLE


response_generator = ResponseGenerator()
