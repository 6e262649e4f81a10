from datetime import datetime

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, utcnow


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        # a user can save a listing only once
        UniqueConstraint("user_id", "listing_id", name="uq_favorite_user_listing"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("fav"))
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    listing_id: Mapped[str] = mapped_column(String, ForeignKey("listings.id"), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
