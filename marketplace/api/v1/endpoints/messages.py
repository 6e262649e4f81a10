from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.db import get_db
from marketplace.models.conversation import Conversation
from marketplace.schemas.common import MessageResponse
from marketplace.schemas.message import (
    ConversationEnvelope,
    ConversationListEnvelope,
    ConversationListingOut,
    ConversationOut,
    ConversationSummaryOut,
    MessageEnvelope,
    MessageOut,
    SendMessageIn,
    UnreadCountEnvelope,
)
from marketplace.schemas.user import OwnerSummary
from marketplace.services.auth import Actor, get_actor
from marketplace.services.conversations import (
    get_or_create,
    list_conversations,
    mark_read,
    send_message,
    unread_count,
)

router = APIRouter()


def _conversation_out(conversation: Conversation) -> ConversationOut:
    return ConversationOut(
        id=conversation.id,
        participants=list(conversation.participants),
        listing_id=conversation.listing_id,
        last_message_id=conversation.last_message_id,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


@router.get("/messages/conversations", response_model=ConversationListEnvelope)
async def get_conversations(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ConversationListEnvelope:
    summaries = await list_conversations(db, actor.user_id)
    out = [
        ConversationSummaryOut(
            id=s.conversation.id,
            other_user=OwnerSummary.model_validate(s.other_user) if s.other_user else None,
            listing=ConversationListingOut.model_validate(s.listing) if s.listing else None,
            last_message=MessageOut.model_validate(s.last_message) if s.last_message else None,
            unread_count=s.unread_count,
            updated_at=s.conversation.updated_at,
        )
        for s in summaries
    ]
    return ConversationListEnvelope(count=len(out), conversations=out)


@router.get("/messages/conversation/{user_id}/{listing_id}", response_model=ConversationEnvelope)
async def get_conversation(
    user_id: str,
    listing_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ConversationEnvelope:
    conversation, messages = await get_or_create(db, actor.user_id, user_id, listing_id)
    return ConversationEnvelope(
        conversation=_conversation_out(conversation),
        messages=[MessageOut.model_validate(m) for m in messages],
    )


@router.post("/messages", response_model=MessageEnvelope, status_code=201)
async def post_message(
    payload: SendMessageIn,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> MessageEnvelope:
    message = await send_message(db, payload.conversation_id, actor.user_id, payload.content)
    return MessageEnvelope(message=MessageOut.model_validate(message))


@router.put("/messages/read/{conversation_id}", response_model=MessageResponse)
async def put_read(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    updated = await mark_read(db, conversation_id, actor.user_id)
    return MessageResponse(message=f"{updated} messages marked as read")


@router.get("/messages/unread", response_model=UnreadCountEnvelope)
async def get_unread(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> UnreadCountEnvelope:
    return UnreadCountEnvelope(count=await unread_count(db, actor.user_id))
