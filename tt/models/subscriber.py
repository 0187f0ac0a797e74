"""Subscriber model: links users to the things they want to hear about."""

from sqlmodel import Field, SQLModel


class Subscriber(SQLModel, table=True):
    __tablename__ = "subscribers"

    user_id: int = Field(foreign_key="users.id", primary_key=True, ondelete="CASCADE")
    thing_id: int = Field(foreign_key="things.id", primary_key=True, ondelete="CASCADE")
    creator: bool = Field(default=False, nullable=False)
