"""Thing model."""

from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import _utcnow


class Thing(SQLModel, table=True):
    __tablename__ = "things"

    id: Optional[int] = Field(default=None, primary_key=True)
    address: str = Field(nullable=False, sa_type=sa.Text)
    type: str = Field(nullable=False, index=True, max_length=16)  # dir | file | irods | openstack | s3
    created: datetime = Field(default_factory=_utcnow, nullable=False, sa_type=sa.DateTime)
    description: str = Field(default="", nullable=False, sa_type=sa.Text)
    reason: str = Field(nullable=False, sa_type=sa.Text)
    remove: date = Field(nullable=False, sa_type=sa.Date)
    warned1: Optional[datetime] = Field(default=None, sa_type=sa.DateTime)
    warned2: Optional[datetime] = Field(default=None, sa_type=sa.DateTime)
    removed: bool = Field(default=False, nullable=False)
