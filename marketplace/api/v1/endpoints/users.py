from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.schemas.common import MessageResponse
from marketplace.schemas.user import (
    PasswordUpdate,
    ProfileUpdate,
    UserEnvelope,
    UserListEnvelope,
    UserPrivateOut,
    UserProfileEnvelope,
    UserProfileOut,
)
from marketplace.services.auth import Actor, get_actor, require_admin
from marketplace.services.users import delete_user, list_users, public_profile, update_password, update_profile

router = APIRouter()


@router.get("/users", response_model=UserListEnvelope)
async def all_users(_: Actor = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> UserListEnvelope:
    users = await list_users(db)
    return UserListEnvelope(count=len(users), users=[UserPrivateOut.model_validate(u) for u in users])


@router.put("/users/profile", response_model=UserEnvelope)
async def edit_profile(
    payload: ProfileUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> UserEnvelope:
    user = await update_profile(db, actor.user_id, payload)
    return UserEnvelope(user=UserPrivateOut.model_validate(user))


@router.put("/users/password", response_model=MessageResponse)
async def change_password(
    payload: PasswordUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await update_password(db, actor.user_id, payload)
    return MessageResponse(message="Password updated successfully")


@router.get("/users/{user_id}", response_model=UserProfileEnvelope)
async def get_profile(user_id: str, db: AsyncSession = Depends(get_db)) -> UserProfileEnvelope:
    user, listings_count = await public_profile(db, user_id)
    out = UserProfileOut(
        id=user.id,
        name=user.name,
        avatar=user.avatar,
        location=user.location,
        bio=user.bio,
        created_at=user.created_at,
        listings_count=listings_count,
    )
    return UserProfileEnvelope(user=out)


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def remove_user(
    user_id: str,
    _: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await delete_user(db, user_id)
    return MessageResponse(message="User removed")
