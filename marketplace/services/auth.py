from dataclasses import dataclass

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.core.errors import Forbidden, Unauthenticated
from marketplace.core.security import decode_access_token
from marketplace.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    user_id: str
    is_admin: bool

    def can_manage(self, owner_id: str) -> bool:
        return self.is_admin or self.user_id == owner_id


async def _resolve_actor(credentials: HTTPAuthorizationCredentials | None, db: AsyncSession) -> Actor | None:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        return None

    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise Unauthenticated("Not authorized, token failed")

    user = (await db.execute(select(User).where(User.id == claims.user_id))).scalar_one_or_none()
    if not user:
        raise Unauthenticated("Not authorized, user no longer exists")

    return Actor(user_id=user.id, is_admin=user.is_admin)


async def get_actor(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    actor = await _resolve_actor(credentials, db)
    if actor is None:
        raise Unauthenticated("Not authorized, no token")
    return actor


async def get_optional_actor(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor | None:
    # Public endpoints: no header -> anonymous; a bad token is still a 401.
    return await _resolve_actor(credentials, db)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise Forbidden("Admin role required")
    return actor
