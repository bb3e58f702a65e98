from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.errors import AuthRequired
from app.core.security import decode_token
from app.models.user import User
from app.services.lifecycle import SessionLifecycleManager
from app.services.templates import ExerciseTemplateProvider

bearer = HTTPBearer(auto_error=False)

async def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The authenticated owner; every session call is scoped to it."""
    if creds is None or not creds.credentials:
        raise AuthRequired("Not authenticated")

    try:
        user_id = decode_token(creds.credentials, "access")
    except ValueError as exc:
        raise AuthRequired(str(exc))

    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if not user:
        raise AuthRequired("User not found")

    return user


def get_lifecycle(request: Request) -> SessionLifecycleManager:
    return request.app.state.lifecycle


def get_template_provider(request: Request) -> ExerciseTemplateProvider:
    return request.app.state.templates
