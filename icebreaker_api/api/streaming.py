"""Server-Sent Events bridge from store subscriptions to HTTP clients."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse

from ..errors import IcebreakerError
from ..storage import Subscription

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0

Subscribe = Callable[[Callable[[Any], None], Callable[[Exception], None]], Awaitable[Subscription]]


def sse_event(event_type: str, **fields: Any) -> str:
    """Format one SSE data frame."""
    return f"data: {json.dumps(jsonable_encoder({'type': event_type, **fields}))}\n\n"


def sse_response(events: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


async def drain_queue(
    request: Request, queue: asyncio.Queue, format_item: Callable[[Any], str]
) -> AsyncIterator[str]:
    """Yield queued items as SSE frames until the client leaves or an error arrives."""
    while True:
        if await request.is_disconnected():
            logger.debug("SSE client disconnected")
            return
        try:
            item = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
        except TimeoutError:
            yield ": keep-alive\n\n"
            continue

        if isinstance(item, Exception):
            logger.warning(f"Stream subscription failed: {item}")
            yield sse_event("error", error=str(item))
            return
        yield format_item(item)
        await asyncio.sleep(0)  # Allow other tasks to run


async def subscription_events(
    request: Request, subscribe: Subscribe, name: str
) -> AsyncIterator[str]:
    """Stream every snapshot a store subscription delivers.

    Args:
        request: Incoming request (used to detect disconnects)
        subscribe: Coroutine taking (on_next, on_error) and returning a Subscription
        name: Key under which each snapshot is sent
    """
    queue: asyncio.Queue = asyncio.Queue()
    try:
        subscription = await subscribe(queue.put_nowait, queue.put_nowait)
    except IcebreakerError as e:
        logger.warning(f"Failed to open {name} stream: {e}")
        yield sse_event("error", error=str(e))
        return

    try:
        yield sse_event("connected")
        async for frame in drain_queue(
            request, queue, lambda item: sse_event("snapshot", **{name: item})
        ):
            yield frame
    finally:
        subscription.cancel()
