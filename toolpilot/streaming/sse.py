import json
import logging
from contextlib import aclosing
from typing import AsyncIterator

from sse_starlette.sse import ServerSentEvent
from starlette.requests import Request

from ..models.events import Event

logger = logging.getLogger(__name__)


def to_sse(event: Event) -> ServerSentEvent:
    """One SSE frame per event: `event:` is the type, `data:` the JSON-encoded event."""
    return ServerSentEvent(data=json.dumps(event.model_dump(mode="json")), event=event.type.value)


async def event_generator(request: Request, events: AsyncIterator[Event]) -> AsyncIterator[ServerSentEvent]:
    """
    Async generator for SSE.
    Relays executor events to the client; when the client goes away the
    underlying generator is closed, which cancels whatever is in flight.
    """
    async with aclosing(events) as stream:
        async for event in stream:
            if await request.is_disconnected():
                logger.info("Client disconnected. Closing stream.")
                return
            yield to_sse(event)
