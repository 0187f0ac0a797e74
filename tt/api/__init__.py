"""
HTTP routes.

/things — list, create, delete and listen for new things
/users  — create and delete users
"""

from fastapi import APIRouter

from . import things, users

router = APIRouter()

router.include_router(things.router, prefix="/things", tags=["Things"])
router.include_router(users.router, prefix="/users", tags=["Users"])
