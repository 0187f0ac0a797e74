"""
Shared fixtures: a SQLite-backed store, example data and an HTTP client.
"""

from __future__ import annotations

from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient

from tt.core.broadcast import Broadcaster
from tt.core.config import Settings
from tt.main import create_app
from tt.schemas.common import ThingsType
from tt.schemas.things import CreateThingParams
from tt.services.store import SQLThingStore

THINGS_TYPES = [
    ThingsType.IRODS,
    ThingsType.DIR,
    ThingsType.S3,
    ThingsType.FILE,
    ThingsType.OPENSTACK,
]
THINGS_PER_TYPE = 2
ADDRESSES = ["j", "c", "e", "i", "a", "f", "b", "g", "d", "h"]
REASONS = ["i", "c", "g", "e", "a", "d", "f", "h", "j", "b"]


def example_things() -> list[CreateThingParams]:
    """
    Ten things, two per type, created alternately by user1 and user2.

    Address, reason and removal date each sort the things in a different
    order, and removal dates ascend with id.
    """
    things = []
    i = 0
    for things_type in THINGS_TYPES:
        for j in range(THINGS_PER_TYPE):
            things.append(
                CreateThingParams(
                    address=ADDRESSES[i],
                    type=things_type,
                    description="desc",
                    reason=REASONS[i],
                    remove=date(1970 + i, 1, 2),
                    creator="user1" if j % 2 == 0 else "user2",
                )
            )
            i += 1
    return things


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'tt.db'}",
        sse_listener_buffer=4,
    )


@pytest.fixture
async def store(settings):
    s = SQLThingStore.from_settings(settings)
    await s.init_schema()
    yield s
    await s.close()


@pytest.fixture
async def users(store):
    return [
        await store.create_user("user1", "user1@example.com"),
        await store.create_user("user2", "user2@example.com"),
    ]


@pytest.fixture
async def things(store, users):
    return [await store.create_thing(params) for params in example_things()]


@pytest.fixture
async def broadcaster():
    b = Broadcaster(buffer_size=4)
    b.start()
    yield b
    await b.shutdown()


@pytest.fixture
def app(settings, store, broadcaster):
    return create_app(settings=settings, store=store, broadcaster=broadcaster)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
