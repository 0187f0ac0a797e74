"""
Server-sent events for thing creation.

ServerEvent is a named event whose data always fits on one line. A created
thing is published once through broadcast_new_thing() and reaches every
client through its own new_thing_stream() generator.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncGenerator

import structlog
from fastapi import Request

from tt.core.broadcast import Broadcaster, ListenerClosed
from tt.schemas.things import ThingRead

log = structlog.get_logger("tt.events")

NEW_THING_EVENT = "newThing"
POLL_INTERVAL = 1.0  # seconds between disconnect checks


@dataclass(frozen=True)
class ServerEvent:
    event: str
    data: str

    @property
    def payload(self) -> str:
        # A newline in data would end the SSE field early.
        return self.data.replace("\r", "").replace("\n", "")

    def as_sse(self) -> dict:
        """The dict form EventSourceResponse expects."""
        return {"event": self.event, "data": self.payload}

    def encode(self) -> str:
        """The event exactly as written to the wire."""
        return f"event: {self.event}\ndata: {self.payload}\n\n"


def render_thing(thing: ThingRead) -> str:
    return thing.model_dump_json()


def broadcast_new_thing(broadcaster: Broadcaster[ServerEvent], thing: ThingRead) -> None:
    """Tell every connected client about a newly created thing."""
    broadcaster.publish(ServerEvent(NEW_THING_EVENT, render_thing(thing)))
    log.debug("events.new_thing_published", thing_id=thing.id, listeners=broadcaster.listener_count)


async def new_thing_stream(
    request: Request,
    broadcaster: Broadcaster[ServerEvent],
    poll_interval: float = POLL_INTERVAL,
) -> AsyncGenerator[dict, None]:
    """
    SSE generator for one client.

    Registers a listener on first iteration and unregisters it however the
    stream ends: client disconnect, broadcaster shutdown or cancellation.
    """
    listener = broadcaster.register()
    log.info("sse.connected", listener=listener.id, client=_client(request))

    try:
        while True:
            if await request.is_disconnected():
                break

            try:
                event = await listener.get(timeout=poll_interval)
            except ListenerClosed:
                break

            if event is None:
                continue
            yield event.as_sse()
    except asyncio.CancelledError:
        log.info("sse.cancelled", listener=listener.id)
        raise
    finally:
        broadcaster.unregister(listener)
        log.info("sse.disconnected", listener=listener.id, dropped=listener.dropped)


def _client(request: Request) -> str:
    if request.client is None:
        return "-"
    return f"{request.client.host}:{request.client.port}"
