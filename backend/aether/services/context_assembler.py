"""Merge history, the new user turn and attachment text into model input."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from aether.services.attachment_pipeline import AttachmentResult

REVIEW_PLACEHOLDER = "Please review the attached files."


@dataclass
class AssembledContext:
    messages: list[dict[str, str]] = field(default_factory=list)
    context: str = ""


def build_attachments_context(results: Iterable[AttachmentResult]) -> str:
    """One "File: <name>" block per attachment with text, blank-line separated."""
    blocks = [
        f"File: {result.attachment.name}\n{result.display_text}"
        for result in results
        if result.display_text
    ]
    return "\n\n".join(blocks)


def assemble_context(
    prior_messages: Iterable[dict[str, str]],
    new_user_text: str,
    results: Iterable[AttachmentResult],
) -> AssembledContext:
    """Build the ordered message list for the reply call.

    Args:
        prior_messages: Earlier turns, oldest first, each with role and content
        new_user_text: What the user typed (may be empty)
        results: Attachment results for the new turn

    Returns:
        AssembledContext whose last message is the new user turn
    """
    messages = [{"role": m["role"], "content": m["content"]} for m in prior_messages]

    content = new_user_text if new_user_text.strip() else REVIEW_PLACEHOLDER
    context = build_attachments_context(results)
    if context:
        content = f"{content}\n\nAttached files:\n{context}"

    messages.append({"role": "user", "content": content})
    return AssembledContext(messages=messages, context=context)
