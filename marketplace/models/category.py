from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, TimestampMixin

DEFAULT_ICON = "📦"
DEFAULT_COLOR = "from-gray-500 to-gray-600"


class Category(TimestampMixin, Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("cat"))

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default=DEFAULT_ICON)
    color: Mapped[str] = mapped_column(String(80), nullable=False, default=DEFAULT_COLOR)
    image: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    # Flat table + nullable parent index; children are found by `parent_id == id`.
    parent_id: Mapped[str | None] = mapped_column(String, ForeignKey("categories.id"), nullable=True, index=True)
