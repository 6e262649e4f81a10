from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import Conflict, NotFound, Unauthenticated, ValidationFailed, field_error
from marketplace.core.security import create_access_token, hash_password, verify_password
from marketplace.models.conversation import Conversation
from marketplace.models.favorite import Favorite
from marketplace.models.listing import Listing
from marketplace.models.message import Message
from marketplace.models.user import User
from marketplace.schemas.auth import LoginIn, RegisterIn
from marketplace.schemas.user import PasswordUpdate, ProfileUpdate
from marketplace.services.listing_state import ACTIVE
from marketplace.services.listings import delete_listings_for_user

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise NotFound("User not found")
    return user


async def _email_taken(db: AsyncSession, email: str, *, exclude_id: str | None = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude_id:
        stmt = stmt.where(User.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


async def register(db: AsyncSession, payload: RegisterIn) -> tuple[User, str]:
    email = _normalize_email(payload.email)
    if await _email_taken(db, email):
        raise Conflict("User already exists")

    user = User(name=payload.name, email=email, password_hash=hash_password(payload.password), is_admin=False)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.exception("register failed: integrity error")
        raise Conflict("User already exists")
    return user, create_access_token(user.id)


async def login(db: AsyncSession, payload: LoginIn) -> tuple[User, str]:
    email = _normalize_email(payload.email)
    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    # same message for unknown email and wrong password
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")
    return user, create_access_token(user.id)


async def public_profile(db: AsyncSession, user_id: str) -> tuple[User, int]:
    user = await get_user_or_404(db, user_id)
    listings_count = (
        await db.execute(
            select(func.count()).select_from(Listing).where(Listing.user_id == user.id, Listing.status == ACTIVE)
        )
    ).scalar_one()
    return user, listings_count


async def update_profile(db: AsyncSession, user_id: str, payload: ProfileUpdate) -> User:
    user = await get_user_or_404(db, user_id)

    if payload.email is not None:
        email = _normalize_email(payload.email)
        if email != user.email:
            if await _email_taken(db, email, exclude_id=user.id):
                raise Conflict("Email already in use")
            user.email = email

    if payload.name is not None:
        user.name = payload.name
    for name in ("avatar", "phone", "location", "bio"):
        if name in payload.model_fields_set:
            setattr(user, name, getattr(payload, name))

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.exception("profile update failed: integrity error")
        raise Conflict("Email already in use")
    return user


async def update_password(db: AsyncSession, user_id: str, payload: PasswordUpdate) -> None:
    user = await get_user_or_404(db, user_id)
    if not verify_password(payload.current_password, user.password_hash):
        raise Unauthenticated("Current password is incorrect")
    if len(payload.new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(
            "Password is too short",
            errors=[field_error("new_password", f"at least {MIN_PASSWORD_LENGTH} characters")],
        )
    user.password_hash = hash_password(payload.new_password)
    await db.commit()


async def list_users(db: AsyncSession) -> list[User]:
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    return list((await db.execute(stmt)).scalars().all())


async def delete_user(db: AsyncSession, user_id: str) -> None:
    """
    Remove a user and everything that points at them: their listings (with the
    listing cascade), their favorites, and every conversation they took part in.
    """
    user = await get_user_or_404(db, user_id)

    removed = await delete_listings_for_user(db, user.id)
    await db.execute(delete(Favorite).where(Favorite.user_id == user.id))

    conversation_ids = select(Conversation.id).where(
        or_(Conversation.participant_low == user.id, Conversation.participant_high == user.id)
    )
    await db.execute(
        delete(Message).where(
            or_(
                Message.conversation_id.in_(conversation_ids),
                Message.sender_id == user.id,
                Message.receiver_id == user.id,
            )
        )
    )
    await db.execute(
        delete(Conversation).where(
            or_(Conversation.participant_low == user.id, Conversation.participant_high == user.id)
        )
    )
    await db.execute(delete(User).where(User.id == user.id))
    await db.commit()
    log.info("user %s deleted with %s listings", user_id, removed)
