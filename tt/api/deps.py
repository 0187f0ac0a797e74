"""
Request dependencies.

Everything a handler needs is attached to ``app.state`` by ``create_app``;
these helpers fetch it so handlers never touch globals.
"""

from fastapi import Request

from tt.core.broadcast import Broadcaster
from tt.core.events import ServerEvent
from tt.services.store import ThingStore


def get_store(request: Request) -> ThingStore:
    return request.app.state.store


def get_broadcaster(request: Request) -> Broadcaster[ServerEvent]:
    return request.app.state.broadcaster
