"""
Server-Sent Events framing for Agent API message streams.

send_streaming_message() returns the raw response; this helper only splits
it into events. Payloads are returned as text and are not interpreted.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SseEvent:
    """
    One framed event.

    Attributes:
        data: Data lines joined with newlines
        event: Event type, "message" when the stream did not name one
        id: Last event id field, if any
    """

    data: str
    event: str = "message"
    id: str | None = None


async def iter_sse_events(response: httpx.Response) -> AsyncIterator[SseEvent]:
    """
    Yield events from an open event-stream response.

    Blank lines end an event; lines starting with ':' are comments; an
    event with no data lines is skipped. The response is closed when the
    iterator finishes or is closed early.

    Example:
        >>> response = await client.send_streaming_message("Hello!", 1)
        >>> async for event in iter_sse_events(response):
        ...     print(event.event, event.data)
    """
    event_type: str | None = None
    event_id: str | None = None
    data_lines: list[str] = []

    try:
        async for line in response.aiter_lines():
            if line == "":
                if data_lines:
                    yield SseEvent(
                        data="\n".join(data_lines),
                        event=event_type or "message",
                        id=event_id,
                    )
                event_type = None
                data_lines = []
                continue
            if line.startswith(":"):
                continue

            field, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]

            if field == "data":
                data_lines.append(value)
            elif field == "event":
                event_type = value
            elif field == "id":
                event_id = value
            else:
                logger.debug(f"[STREAM] Ignoring SSE field: {field}")

        if data_lines:
            yield SseEvent(data="\n".join(data_lines), event=event_type or "message", id=event_id)
    finally:
        await response.aclose()
