"""
Users API endpoints.

POST   /users          — Create a user
DELETE /users/{userId} — Delete a user and their subscriptions
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tt.api.deps import get_store
from tt.schemas.users import UserCreate, UserRead
from tt.services.store import ThingStore

router = APIRouter()


@router.post("", response_model=UserRead)
async def create_user(
    body: UserCreate,
    store: ThingStore = Depends(get_store),
):
    """Create a user. Name and email must not already be taken."""
    return await store.create_user(body.name, body.email)


@router.delete("/{userId}")
async def delete_user(
    userId: int,
    store: ThingStore = Depends(get_store),
):
    """Delete a user. Things they created are kept."""
    await store.delete_user(userId)
    return {"deleted": userId}
