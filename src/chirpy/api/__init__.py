"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Every route here is "open" at the router level. The ones that
need a caller identity declare it themselves with get_current_user_id,
and login/refresh/revoke authenticate with the credentials in the body
or the refresh token in the header.
"""

from fastapi import APIRouter

from chirpy.api.auth import router as auth_router
from chirpy.api.health import router as health_router
from chirpy.api.users import router as users_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(auth_router, tags=["auth"])
