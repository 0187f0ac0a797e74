"""Thing-related Pydantic schemas shared by the store and the HTTP layer."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .common import OrderBy, OrderDirection, ThingsType
from .users import UserRead


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

class ThingBase(BaseModel):
    address: str = Field(..., min_length=1)
    type: ThingsType
    description: str = ""
    reason: str = Field(..., min_length=1)
    remove: date


class ThingCreate(ThingBase):
    """Request body for POST /things. Creator is the name of an existing user."""
    creator: str = Field(..., min_length=1)


class CreateThingParams(ThingBase):
    """Store input. Creator is either a known user or the name of one."""
    creator: Union[UserRead, str]


class ThingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    address: str
    type: ThingsType
    created: datetime
    description: str
    reason: str
    remove: date
    warned1: Optional[datetime] = None
    warned2: Optional[datetime] = None
    removed: bool = False
    creator: Optional[UserRead] = None


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class ListParams(BaseModel):
    """Raw, unvalidated list parameters as they arrive on a request."""
    type: Optional[str] = None
    sort: Optional[str] = None
    dir: Optional[str] = None
    page: int = 0
    per_page: int = 0


class ThingsQuery(BaseModel):
    """Validated list parameters, ready for the store."""
    filter_on_type: Optional[ThingsType] = None
    order_by: OrderBy = OrderBy.REMOVE
    order_direction: OrderDirection = OrderDirection.ASC
    page: int = 0
    per_page: int = 0

    @property
    def paginated(self) -> bool:
        return self.page >= 1 and self.per_page >= 1

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page if self.paginated else 0


class GetThingsResult(BaseModel):
    things: List[ThingRead] = Field(default_factory=list)
    last_page: int = 0


class ThingList(BaseModel):
    things: List[ThingRead] = Field(default_factory=list)
    page: int = 0
    per_page: int = 0
    last_page: int = 0


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

class SubscriberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    thing_id: int
    creator: bool = False
