"""
Things API endpoints.

GET    /things           — List things, optionally filtered, sorted and paginated
POST   /things           — Create a thing and announce it to listeners
DELETE /things/{thingId} — Delete a thing and its subscriptions
GET    /things/listen    — SSE stream of newThing events
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request
from sse_starlette.sse import EventSourceResponse

from tt.api.deps import get_broadcaster, get_store
from tt.core.broadcast import Broadcaster
from tt.core.events import ServerEvent, broadcast_new_thing, new_thing_stream
from tt.core.exceptions import BroadcasterClosed
from tt.schemas.things import CreateThingParams, ListParams, ThingCreate, ThingList, ThingRead
from tt.services.listing import parse_int, translate
from tt.services.store import ThingStore

router = APIRouter()
log = structlog.get_logger("tt.api.things")


@router.get("", response_model=ThingList)
async def list_things(
    type: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    dir: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    per_page: Optional[str] = Query(None),
    store: ThingStore = Depends(get_store),
):
    """
    List things.

    Unknown sort, dir or type values are rejected with 400. Pagination only
    applies when page and per_page are both positive integers.
    """
    query = translate(
        ListParams(
            type=type,
            sort=sort,
            dir=dir,
            page=parse_int(page),
            per_page=parse_int(per_page),
        )
    )
    result = await store.get_things(query)
    return ThingList(
        things=result.things,
        page=query.page,
        per_page=query.per_page,
        last_page=result.last_page,
    )


@router.post("", response_model=ThingRead)
async def create_thing(
    body: ThingCreate,
    store: ThingStore = Depends(get_store),
    broadcaster: Broadcaster[ServerEvent] = Depends(get_broadcaster),
):
    """Create a thing owned by an existing user, then tell every listener."""
    thing = await store.create_thing(CreateThingParams(**body.model_dump()))

    try:
        broadcast_new_thing(broadcaster, thing)
    except BroadcasterClosed:
        log.warning("things.broadcast_skipped", thing_id=thing.id, reason="broadcaster closed")

    return thing


@router.get("/listen")
async def listen_things(
    request: Request,
    broadcaster: Broadcaster[ServerEvent] = Depends(get_broadcaster),
):
    """Stream newThing events. The data of each is the created thing as JSON."""
    return EventSourceResponse(
        new_thing_stream(request, broadcaster),
        sep="\n",
        headers={"Cache-Control": "no-cache"},
    )


@router.delete("/{thingId}")
async def delete_thing(
    thingId: int,
    store: ThingStore = Depends(get_store),
):
    """Delete a thing. Deleting an unknown id is not an error."""
    await store.delete_thing(thingId)
    return {"deleted": thingId}
