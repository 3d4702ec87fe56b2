"""Users API — registration.

- POST /users → create an account (password stored as bcrypt hash)
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from chirpy.auth.dependencies import get_user_service
from chirpy.services.user_service import UserService

router = APIRouter()


class UserCreate(BaseModel):
    email: str
    password: str


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    created_at: datetime
    updated_at: datetime


@router.post("/users", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate, service: UserService = Depends(get_user_service)
):
    """Register a new user."""
    user = await service.register(body.email, body.password)
    return UserRead(
        id=user.id,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )
