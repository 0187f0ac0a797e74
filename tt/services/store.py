"""
Record store: durable CRUD over users, things and subscribers.

The HTTP layer only sees the ThingStore protocol, so tests can hand it a fake.
SQLThingStore is the one real implementation, over an async SQLAlchemy engine.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, Optional, Protocol, Union, runtime_checkable

import structlog
from sqlalchemy import and_, delete, exc as sa_exc, func, true, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlmodel import select

from tt.core.config import Settings
from tt.core.database import create_engine, create_session_factory, init_db
from tt.core.exceptions import (
    DuplicateEmail,
    DuplicateName,
    IntegrityError,
    NoSuchUser,
    StoreUnavailable,
)
from tt.models import Subscriber, Thing, User
from tt.models.base import _utcnow
from tt.schemas.common import OrderBy, OrderDirection, ThingsType
from tt.schemas.things import CreateThingParams, GetThingsResult, SubscriberRead, ThingRead, ThingsQuery
from tt.schemas.users import UserRead
from tt.services.listing import last_page


@runtime_checkable
class ThingStore(Protocol):
    """The operations the rest of tt needs from persistence."""

    async def create_user(self, name: str, email: str) -> UserRead:
        """Create a user. Name and email must both be unique."""
        ...

    async def create_thing(self, params: CreateThingParams) -> ThingRead:
        """
        Create a thing and record its creator as its first subscriber.

        Both rows are written in one transaction, or neither is.
        """
        ...

    async def get_things(self, query: ThingsQuery) -> GetThingsResult:
        """Filtered, ordered and optionally paginated things, plus the last page."""
        ...

    async def delete_user(self, user_id: int) -> None:
        """Delete a user and their subscriptions, but not the things they created."""
        ...

    async def delete_thing(self, thing_id: int) -> None:
        """Delete a thing and its subscriptions."""
        ...

    async def close(self) -> None:
        ...


_ORDER_COLUMNS = {
    OrderBy.ADDRESS: Thing.address,
    OrderBy.TYPE: Thing.type,
    OrderBy.REASON: Thing.reason,
    OrderBy.REMOVE: Thing.remove,
}

_STRING_ORDERS = {OrderBy.ADDRESS, OrderBy.TYPE, OrderBy.REASON}


class SQLThingStore:
    """ThingStore backed by a relational database through SQLAlchemy."""

    def __init__(
        self,
        engine: AsyncEngine,
        sort_collation: Optional[str] = None,
        log: Optional[structlog.typing.FilteringBoundLogger] = None,
    ) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._sort_collation = sort_collation
        self._log = log or structlog.get_logger("tt.store")

    @classmethod
    def from_settings(cls, settings: Settings, log=None) -> "SQLThingStore":
        return cls(create_engine(settings), sort_collation=settings.sort_collation, log=log)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """A session whose connectivity failures surface as StoreUnavailable."""
        try:
            async with self._session_factory() as session:
                yield session
        except sa_exc.IntegrityError:
            raise
        except (sa_exc.DBAPIError, OSError) as err:
            self._log.error("store.unavailable", error=str(err))
            raise StoreUnavailable(details={"error": str(err)}) from err

    async def init_schema(self, drop: bool = False) -> None:
        try:
            await init_db(self._engine, drop=drop)
        except (sa_exc.DBAPIError, OSError) as err:
            raise StoreUnavailable(details={"error": str(err)}) from err

    async def close(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, name: str, email: str) -> UserRead:
        async with self._session() as session:
            user = User(name=name, email=email)
            session.add(user)
            try:
                await session.commit()
            except sa_exc.IntegrityError as err:
                await session.rollback()
                raise await self._duplicate_user_error(session, name, email) from err

            self._log.info("user.created", user_id=user.id, name=name)
            return UserRead.model_validate(user)

    async def _duplicate_user_error(
        self, session: AsyncSession, name: str, email: str
    ) -> IntegrityError:
        result = await session.execute(select(User.id).where(User.name == name))
        if result.first() is not None:
            return DuplicateName(details={"name": name})

        result = await session.execute(select(User.id).where(User.email == email))
        if result.first() is not None:
            return DuplicateEmail(details={"email": email})

        return IntegrityError(details={"name": name, "email": email})

    async def get_user_by_name(self, name: str) -> UserRead:
        async with self._session() as session:
            user = await self._user_by_name(session, name)
            return UserRead.model_validate(user)

    async def _user_by_name(self, session: AsyncSession, name: str) -> User:
        result = await session.execute(select(User).where(User.name == name))
        user = result.scalar_one_or_none()
        if user is None:
            raise NoSuchUser(details={"name": name})
        return user

    async def _resolve_creator(
        self, session: AsyncSession, creator: Union[UserRead, str]
    ) -> User:
        if isinstance(creator, str):
            return await self._user_by_name(session, creator)

        user = await session.get(User, creator.id)
        if user is None:
            raise NoSuchUser(details={"id": creator.id})
        return user

    async def delete_user(self, user_id: int) -> None:
        async with self._session() as session:
            await session.execute(delete(User).where(User.id == user_id))
            await session.commit()
        self._log.info("user.deleted", user_id=user_id)

    # ------------------------------------------------------------------
    # Things
    # ------------------------------------------------------------------

    async def create_thing(self, params: CreateThingParams) -> ThingRead:
        created = _utcnow()

        async with self._session() as session:
            try:
                async with session.begin():
                    user = await self._resolve_creator(session, params.creator)

                    thing = Thing(
                        address=params.address,
                        type=params.type.value,
                        created=created,
                        description=params.description,
                        reason=params.reason,
                        remove=params.remove,
                    )
                    session.add(thing)
                    await session.flush()

                    session.add(Subscriber(user_id=user.id, thing_id=thing.id, creator=True))
            except sa_exc.IntegrityError as err:
                # The creator vanished between lookup and commit.
                raise NoSuchUser(details={"creator": _creator_ref(params.creator)}) from err

            self._log.info("thing.created", thing_id=thing.id, creator=user.name)
            return _to_read(thing, user)

    async def get_things(self, query: ThingsQuery) -> GetThingsResult:
        stmt = (
            select(Thing, User)
            .outerjoin(
                Subscriber,
                and_(Subscriber.thing_id == Thing.id, Subscriber.creator == true()),
            )
            .outerjoin(User, User.id == Subscriber.user_id)
        )
        if query.filter_on_type is not None:
            stmt = stmt.where(Thing.type == query.filter_on_type.value)

        stmt = stmt.order_by(self._order_clause(query), Thing.id.asc())

        async with self._session() as session:
            pages = 0
            if query.paginated:
                count = await self._count_things(session, query)
                pages = last_page(count, query.per_page)
                # Past the end; also keeps OFFSET and LIMIT within the count.
                if query.offset >= count:
                    return GetThingsResult(things=[], last_page=pages)
                stmt = stmt.offset(query.offset).limit(min(query.per_page, count))

            result = await session.execute(stmt)
            things = [_to_read(thing, user) for thing, user in result.all()]

        return GetThingsResult(things=things, last_page=pages)

    def _order_clause(self, query: ThingsQuery):
        column = _ORDER_COLUMNS[query.order_by]
        if self._sort_collation and query.order_by in _STRING_ORDERS:
            column = column.collate(self._sort_collation)

        if query.order_direction == OrderDirection.DESC:
            return column.desc()
        return column.asc()

    async def _count_things(self, session: AsyncSession, query: ThingsQuery) -> int:
        stmt = select(func.count()).select_from(Thing)
        if query.filter_on_type is not None:
            stmt = stmt.where(Thing.type == query.filter_on_type.value)
        result = await session.execute(stmt)
        return result.scalar_one()

    async def delete_thing(self, thing_id: int) -> None:
        async with self._session() as session:
            await session.execute(delete(Thing).where(Thing.id == thing_id))
            await session.commit()
        self._log.info("thing.deleted", thing_id=thing_id)

    async def extend_removal(self, thing_id: int, remove: date) -> None:
        """Push back the removal date; any warnings already sent no longer apply."""
        await self._update_thing(thing_id, remove=remove, warned1=None, warned2=None)

    async def update_description(self, thing_id: int, description: str) -> None:
        await self._update_thing(thing_id, description=description)

    async def mark_warned(self, thing_id: int, which: int, when: Optional[datetime] = None) -> None:
        """Record that the first or second removal warning was sent."""
        if which not in (1, 2):
            raise ValueError(f"which must be 1 or 2, not {which}")
        await self._update_thing(thing_id, **{f"warned{which}": when or _utcnow()})

    async def _update_thing(self, thing_id: int, **values) -> None:
        async with self._session() as session:
            await session.execute(update(Thing).where(Thing.id == thing_id).values(**values))
            await session.commit()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def subscribe(self, user_id: int, thing_id: int) -> None:
        async with self._session() as session:
            if await session.get(Subscriber, (user_id, thing_id)) is not None:
                return

            session.add(Subscriber(user_id=user_id, thing_id=thing_id, creator=False))
            try:
                await session.commit()
            except sa_exc.IntegrityError as err:
                await session.rollback()
                raise IntegrityError(
                    "no such user or thing",
                    details={"user_id": user_id, "thing_id": thing_id},
                ) from err

    async def unsubscribe(self, user_id: int, thing_id: int) -> None:
        async with self._session() as session:
            await session.execute(
                delete(Subscriber).where(
                    Subscriber.user_id == user_id,
                    Subscriber.thing_id == thing_id,
                )
            )
            await session.commit()

    async def list_subscribers(self, thing_id: int) -> list[SubscriberRead]:
        return await self._list_subscribers(Subscriber.thing_id == thing_id)

    async def list_subscriptions(self, user_id: int) -> list[SubscriberRead]:
        return await self._list_subscribers(Subscriber.user_id == user_id)

    async def _list_subscribers(self, condition) -> list[SubscriberRead]:
        stmt = (
            select(Subscriber)
            .where(condition)
            .order_by(Subscriber.user_id, Subscriber.thing_id)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return [SubscriberRead.model_validate(s) for s in result.scalars().all()]


def _to_read(thing: Thing, user: Optional[User]) -> ThingRead:
    return ThingRead(
        id=thing.id,
        address=thing.address,
        type=ThingsType(thing.type),
        created=thing.created,
        description=thing.description,
        reason=thing.reason,
        remove=thing.remove,
        warned1=thing.warned1,
        warned2=thing.warned2,
        removed=thing.removed,
        creator=UserRead.model_validate(user) if user is not None else None,
    )


def _creator_ref(creator: Union[UserRead, str]) -> Union[int, str]:
    return creator if isinstance(creator, str) else creator.id
