from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from marketplace.schemas.user import OwnerSummary

MAX_MESSAGE_LENGTH = 1000


class SendMessageIn(BaseModel):
    conversation_id: str = Field(min_length=1, validation_alias=AliasChoices("conversation_id", "conversationId"))
    # blank/too-long content is rejected by the service so the message is uniform
    content: str


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    listing_id: str
    content: str
    is_read: bool
    created_at: datetime


class ConversationOut(BaseModel):
    id: str
    participants: list[str]
    listing_id: str
    last_message_id: str | None = None
    created_at: datetime
    updated_at: datetime


class ConversationListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    images: list[str]
    status: str
    price: float


class ConversationSummaryOut(BaseModel):
    id: str
    other_user: OwnerSummary | None = None
    listing: ConversationListingOut | None = None
    last_message: MessageOut | None = None
    unread_count: int
    updated_at: datetime


class ConversationListEnvelope(BaseModel):
    success: bool = True
    count: int
    conversations: list[ConversationSummaryOut]


class ConversationEnvelope(BaseModel):
    success: bool = True
    conversation: ConversationOut
    messages: list[MessageOut]


class MessageEnvelope(BaseModel):
    success: bool = True
    message: MessageOut


class UnreadCountEnvelope(BaseModel):
    success: bool = True
    count: int
