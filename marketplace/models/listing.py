from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import DateTime

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, JSONType, TimestampMixin

CONDITIONS = ("new", "like-new", "excellent", "good", "fair", "poor")
STATUSES = ("active", "sold", "expired", "pending", "draft")
PRICE_TYPES = ("fixed", "negotiable", "free", "contact")


class Listing(TimestampMixin, Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lst"))

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    # slugify(title) + random suffix
    slug: Mapped[str] = mapped_column(String(140), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    price_type: Mapped[str] = mapped_column(String(20), nullable=False, default="fixed")
    condition: Mapped[str] = mapped_column(String(20), nullable=False, default="good")

    # "active" | "sold" | "expired" | "pending" | "draft"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    images: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    specifications: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    category_id: Mapped[str] = mapped_column(String, ForeignKey("categories.id"), nullable=False, index=True)
    subcategory_id: Mapped[str | None] = mapped_column(String, ForeignKey("categories.id"), nullable=True)

    location: Mapped[str] = mapped_column(String(200), nullable=False)

    # Owner; never reassigned after creation
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)

    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    owner = relationship("User", lazy="joined")
    category = relationship("Category", foreign_keys=[category_id], lazy="joined")
    subcategory = relationship("Category", foreign_keys=[subcategory_id], lazy="joined")
