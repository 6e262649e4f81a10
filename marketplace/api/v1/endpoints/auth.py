from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.schemas.auth import AuthOut, LoginIn, RegisterIn
from marketplace.schemas.user import UserEnvelope, UserPrivateOut
from marketplace.services.auth import Actor, get_actor
from marketplace.services.users import get_user_or_404, login, register

router = APIRouter()


@router.post("/auth/register", response_model=AuthOut, status_code=201)
async def register_user(payload: RegisterIn, db: AsyncSession = Depends(get_db)) -> AuthOut:
    user, token = await register(db, payload)
    return AuthOut(user=UserPrivateOut.model_validate(user), token=token)


@router.post("/auth/login", response_model=AuthOut)
async def login_user(payload: LoginIn, db: AsyncSession = Depends(get_db)) -> AuthOut:
    user, token = await login(db, payload)
    return AuthOut(user=UserPrivateOut.model_validate(user), token=token)


@router.get("/auth/me", response_model=UserEnvelope)
async def me(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> UserEnvelope:
    user = await get_user_or_404(db, actor.user_id)
    return UserEnvelope(user=UserPrivateOut.model_validate(user))
