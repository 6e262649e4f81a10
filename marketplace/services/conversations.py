from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.errors import Forbidden, NotFound, ValidationFailed, field_error
from marketplace.models.base import utcnow
from marketplace.models.conversation import Conversation
from marketplace.models.listing import Listing
from marketplace.models.message import Message
from marketplace.models.user import User
from marketplace.schemas.message import MAX_MESSAGE_LENGTH
from marketplace.services.retry import execute_with_retry

log = logging.getLogger(__name__)


@dataclass
class ConversationSummary:
    conversation: Conversation
    other_user: User | None
    listing: Listing | None
    last_message: Message | None
    unread_count: int


def ordered_pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


def _pair_clause(a: str, b: str, listing_id: str):
    low, high = ordered_pair(a, b)
    return and_(
        Conversation.participant_low == low,
        Conversation.participant_high == high,
        Conversation.listing_id == listing_id,
    )


async def _find(db: AsyncSession, a: str, b: str, listing_id: str) -> Conversation | None:
    stmt = select(Conversation).where(_pair_clause(a, b, listing_id))
    return (await db.execute(stmt)).scalar_one_or_none()


async def conversation_messages(db: AsyncSession, conversation_id: str) -> list[Message]:
    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_or_create(
    db: AsyncSession, self_id: str, other_id: str, listing_id: str
) -> tuple[Conversation, list[Message]]:
    """
    Return the single thread for {self, other} about a listing, creating it on
    first contact. Concurrent first contacts collide on the unique index; the
    loser re-reads the winner's row.
    """
    if self_id == other_id:
        raise ValidationFailed("Cannot start a conversation with yourself", errors=[field_error("user_id", "is you")])

    if (await db.execute(select(Listing.id).where(Listing.id == listing_id))).first() is None:
        raise NotFound("Listing not found")
    if (await db.execute(select(User.id).where(User.id == other_id))).first() is None:
        raise NotFound("User not found")

    conversation = await _find(db, self_id, other_id, listing_id)
    if conversation is None:
        low, high = ordered_pair(self_id, other_id)
        conversation = Conversation(participant_low=low, participant_high=high, listing_id=listing_id)
        db.add(conversation)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            log.info("conversation race on listing=%s, re-reading", listing_id)
            conversation = await _find(db, self_id, other_id, listing_id)
            if conversation is None:
                raise

    return conversation, await conversation_messages(db, conversation.id)


async def _get_for_participant(db: AsyncSession, conversation_id: str, user_id: str) -> Conversation:
    conversation = (
        await db.execute(select(Conversation).where(Conversation.id == conversation_id))
    ).scalar_one_or_none()
    if not conversation:
        raise NotFound("Conversation not found")
    if not conversation.has_participant(user_id):
        raise Forbidden("Not a participant in this conversation")
    return conversation


async def send_message(db: AsyncSession, conversation_id: str, sender_id: str, content: str) -> Message:
    text = (content or "").strip()
    if not text:
        raise ValidationFailed("Message content is required", errors=[field_error("content", "must not be empty")])
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed(
            "Message is too long", errors=[field_error("content", f"at most {MAX_MESSAGE_LENGTH} characters")]
        )

    conversation = await _get_for_participant(db, conversation_id, sender_id)
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        receiver_id=conversation.other_participant(sender_id),
        listing_id=conversation.listing_id,
        content=text,
        is_read=False,
    )
    db.add(message)
    await db.flush()

    conversation.last_message_id = message.id
    conversation.updated_at = utcnow()
    await db.commit()
    return message


async def mark_read(db: AsyncSession, conversation_id: str, reader_id: str) -> int:
    """Flip unread messages addressed to `reader_id`; returns how many changed."""
    await _get_for_participant(db, conversation_id, reader_id)
    result = await db.execute(
        update(Message)
        .where(
            Message.conversation_id == conversation_id,
            Message.receiver_id == reader_id,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount or 0


async def unread_count(db: AsyncSession, user_id: str) -> int:
    stmt = select(func.count()).select_from(Message).where(Message.receiver_id == user_id, Message.is_read.is_(False))
    return (await execute_with_retry(db, stmt)).scalar_one()


async def list_conversations(db: AsyncSession, user_id: str) -> list[ConversationSummary]:
    stmt = (
        select(Conversation)
        .where(or_(Conversation.participant_low == user_id, Conversation.participant_high == user_id))
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
    )
    conversations = list((await execute_with_retry(db, stmt)).scalars().all())
    if not conversations:
        return []

    other_ids = {c.other_participant(user_id) for c in conversations}
    listing_ids = {c.listing_id for c in conversations}
    message_ids = {c.last_message_id for c in conversations if c.last_message_id}

    users = {u.id: u for u in (await db.execute(select(User).where(User.id.in_(other_ids)))).scalars()}
    listings = {
        row.id: row for row in (await db.execute(select(Listing).where(Listing.id.in_(listing_ids)))).unique().scalars()
    }
    messages = {}
    if message_ids:
        messages = {m.id: m for m in (await db.execute(select(Message).where(Message.id.in_(message_ids)))).scalars()}

    unread_rows = await db.execute(
        select(Message.conversation_id, func.count())
        .where(
            Message.conversation_id.in_([c.id for c in conversations]),
            Message.receiver_id == user_id,
            Message.is_read.is_(False),
        )
        .group_by(Message.conversation_id)
    )
    unread = {cid: count for cid, count in unread_rows.all()}

    return [
        ConversationSummary(
            conversation=c,
            other_user=users.get(c.other_participant(user_id)),
            listing=listings.get(c.listing_id),
            last_message=messages.get(c.last_message_id) if c.last_message_id else None,
            unread_count=unread.get(c.id, 0),
        )
        for c in conversations
    ]
