"""Transcript storage and model-input filtering.

Three concerns live here:

- stripping images out of messages before they are stored
- turning a stored transcript into model input (placeholders, legacy tool
  parts, and UI-only data parts are dropped)
- recognising silent completions and choosing the fallback message
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from .llm.base import LLMMessage, ToolCall
from .models import WizardMessage

logger = logging.getLogger(__name__)

CONTENT_FILTER_FALLBACK = (
    "I could not send a response because it was filtered. "
    "Please rephrase and I will continue."
)
LENGTH_FALLBACK = (
    "My response got cut off before I could send it. "
    'Please send "continue" and I will pick up from here.'
)
GENERIC_FALLBACK = (
    "I hit a temporary issue and did not send a usable response. "
    'I still received your message. Please send "continue" and I will keep going.'
)

# Tool parts written by older clients; the model API no longer accepts them.
LEGACY_TOOL_PART_TYPES = frozenset({"dynamic-tool", "tool-invocation"})


def is_image_part(part: dict[str, Any]) -> bool:
    if part.get("type") == "image":
        return True
    return part.get("type") == "file" and str(part.get("mediaType", "")).startswith(
        "image/"
    )


def image_payload(part: dict[str, Any]) -> str:
    """Return the raw image payload (data URL or base64) carried by a part."""
    return str(part.get("image") or part.get("url") or part.get("data") or "")


def strip_data_url(data: str) -> str:
    if data.startswith("data:") and "," in data:
        return data.split(",", 1)[1]
    return data


def image_mime_type(part: dict[str, Any]) -> str:
    """Resolve an image part's MIME type from its data URL or declared type."""
    payload = image_payload(part)
    if payload.startswith("data:"):
        header = payload[5:].split(",", 1)[0]
        mime = header.split(";", 1)[0]
        if mime:
            return mime
    return part.get("mediaType") or part.get("mimeType") or "image/unknown"


def hash_image_data(data: str) -> str:
    """SHA-256 of an image's base64 payload, ignoring any data URL prefix."""
    return hashlib.sha256(strip_data_url(data).encode("utf-8")).hexdigest()


def strip_for_storage(parts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Replace image content with a small placeholder before persisting.

    Args:
        parts: Message parts as received

    Returns:
        New list of parts safe to store
    """
    stripped = []
    for part in parts:
        if is_image_part(part) and not part.get("imageStripped"):
            stripped.append(
                {
                    "type": "image",
                    "imageStripped": True,
                    "mimeType": image_mime_type(part),
                }
            )
        else:
            stripped.append(part)
    return stripped


def is_image_placeholder(part: dict[str, Any]) -> bool:
    return part.get("type") == "image" and bool(part.get("imageStripped"))


def has_renderable_parts(parts: list[dict[str, Any]]) -> bool:
    """True if the parts contain something a user would see as a reply."""
    for part in parts:
        part_type = part.get("type", "")
        if part_type == "text" and part.get("text", "").strip():
            return True
        if part_type.startswith("data-") or part_type.startswith("tool-"):
            return True
    return False


def to_model_messages(messages: list[WizardMessage]) -> list[LLMMessage]:
    """Convert a step transcript into model input.

    Image placeholders, legacy tool parts, and data parts are dropped.
    Tool parts in the current shape become assistant tool calls followed by
    their tool results. A message left with nothing to send is omitted.

    Args:
        messages: Stored transcript for one step, oldest first

    Returns:
        Model-facing messages (without the system message)
    """
    result: list[LLMMessage] = []
    dropped = 0
    for message in messages:
        texts: list[str] = []
        tool_calls: list[ToolCall] = []
        tool_results: list[LLMMessage] = []
        for part in message.parts:
            part_type = part.get("type", "")
            if part_type == "text":
                if part.get("text"):
                    texts.append(part["text"])
            elif part_type in LEGACY_TOOL_PART_TYPES:
                continue
            elif (
                message.role == "assistant"
                and part_type.startswith("tool-")
                and part.get("state") == "output-available"
            ):
                call_id = part.get("toolCallId")
                tool_calls.append(
                    ToolCall(
                        name=part_type[len("tool-"):],
                        parameters=part.get("input") or {},
                        id=call_id,
                    )
                )
                tool_results.append(
                    LLMMessage(
                        role="tool",
                        content=json.dumps(part.get("output")),
                        tool_call_id=call_id,
                    )
                )

        if not texts and not tool_calls:
            dropped += 1
            continue

        if tool_calls:
            result.append(
                LLMMessage(role=message.role, content="", tool_calls=tool_calls)
            )
            result.extend(tool_results)
            if texts:
                result.append(LLMMessage(role=message.role, content="\n".join(texts)))
        else:
            result.append(LLMMessage(role=message.role, content="\n".join(texts)))

    if dropped:
        logger.debug("Omitted %d empty messages from model history", dropped)
    return result


def is_silent_completion(text: str, tool_call_count: int) -> bool:
    """A model turn that produced neither text nor a tool call."""
    return not text.strip() and tool_call_count == 0


def silent_completion_fallback(finish_reason: str | None) -> str:
    """Pick the fallback message for a silent completion."""
    reason = (finish_reason or "").replace("_", "-").lower()
    if reason == "content-filter":
        return CONTENT_FILTER_FALLBACK
    if reason == "length":
        return LENGTH_FALLBACK
    return GENERIC_FALLBACK
