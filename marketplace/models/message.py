from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, utcnow


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("msg"))

    conversation_id: Mapped[str] = mapped_column(String, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    receiver_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)
    listing_id: Mapped[str] = mapped_column(String, ForeignKey("listings.id"), nullable=False)

    content: Mapped[str] = mapped_column(String(1000), nullable=False)
    # unread -> read, never back
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
