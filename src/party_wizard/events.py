"""Streamed turn events and the sinks that receive them.

Turn processing never writes to a transport directly. It is handed an
:class:`EventSink` and calls ``await sink.emit(event)`` at each point where
something becomes visible to the user. :class:`StreamWriter` wraps a sink for
one assistant message, emitting events and recording the matching message
parts so the finished message can be persisted.

Event types:

- ``text-start`` / ``text-delta`` / ``text-end``
- ``tool-call`` / ``tool-result``
- ``data-step-confirmation-request`` ``{request}``
- ``data-step-confirmation-decision`` ``{requestId, decision}``
- ``data-step-confirmed`` ``{requestId, step, nextStep}``
- ``data-recipe-extracted`` ``{recipe, message}``
- ``data-timeline-generated`` ``{timeline, message}``
- ``finish`` / ``error``
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol

from .models import data_part


@dataclass
class WizardEvent:
    """A single streamed event."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.data}


class EventSink(Protocol):
    """Receiver of streamed turn events."""

    async def emit(self, event: WizardEvent) -> None: ...


class ListEventSink:
    """Sink that keeps every event in memory. Useful for tests and batch callers."""

    def __init__(self) -> None:
        self.events: list[WizardEvent] = []

    async def emit(self, event: WizardEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[WizardEvent]:
        return [e for e in self.events if e.type == event_type]

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]


_CLOSED = object()


class QueueEventSink:
    """Sink backed by an asyncio queue for incremental streaming.

    The producer emits events and calls :meth:`close` when the turn ends; the
    consumer iterates with ``async for event in sink``.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)

    async def emit(self, event: WizardEvent) -> None:
        await self._queue.put(event)

    async def close(self) -> None:
        await self._queue.put(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[WizardEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class StreamWriter:
    """Emits events for one assistant message and records its parts.

    Args:
        sink: Where events go
        message_id: Id of the assistant message being produced
    """

    def __init__(self, sink: EventSink, message_id: str | None = None):
        self.sink = sink
        self.message_id = message_id or str(uuid.uuid4())
        self.parts: list[dict[str, Any]] = []

    @property
    def has_text(self) -> bool:
        return any(p["type"] == "text" and p.get("text") for p in self.parts)

    async def write_text(self, text: str) -> None:
        if not text:
            return
        text_id = f"text-{uuid.uuid4().hex[:8]}"
        await self.sink.emit(WizardEvent("text-start", {"id": text_id}))
        await self.sink.emit(WizardEvent("text-delta", {"id": text_id, "delta": text}))
        await self.sink.emit(WizardEvent("text-end", {"id": text_id}))
        # Consecutive text merges into one part, matching how a client renders it.
        if self.parts and self.parts[-1]["type"] == "text":
            self.parts[-1]["text"] += text
        else:
            self.parts.append({"type": "text", "text": text})

    async def write_data(
        self,
        name: str,
        data: dict[str, Any],
        stored: dict[str, Any] | None = None,
    ) -> None:
        """Emit a ``data-<name>`` event.

        Args:
            name: Event name without the ``data-`` prefix
            data: Payload streamed to the client
            stored: Payload recorded in the transcript, if different
        """
        await self.sink.emit(WizardEvent(f"data-{name}", {"data": data}))
        self.parts.append(data_part(name, data if stored is None else stored))

    async def write_tool_call(
        self, tool_call_id: str, name: str, arguments: dict[str, Any]
    ) -> None:
        await self.sink.emit(
            WizardEvent(
                "tool-call",
                {"toolCallId": tool_call_id, "toolName": name, "input": arguments},
            )
        )

    async def write_tool_result(
        self,
        tool_call_id: str,
        name: str,
        arguments: dict[str, Any],
        output: dict[str, Any],
    ) -> None:
        await self.sink.emit(
            WizardEvent(
                "tool-result",
                {"toolCallId": tool_call_id, "toolName": name, "output": output},
            )
        )
        self.parts.append(
            {
                "type": f"tool-{name}",
                "toolCallId": tool_call_id,
                "state": "output-available",
                "input": arguments,
                "output": output,
            }
        )

    async def finish(self, finish_reason: str | None = None) -> None:
        await self.sink.emit(
            WizardEvent(
                "finish",
                {"messageId": self.message_id, "finishReason": finish_reason},
            )
        )
