from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.core.ids import gen_id
from marketplace.models.base import Base, TimestampMixin


class Conversation(TimestampMixin, Base):
    __tablename__ = "conversations"
    __table_args__ = (
        # one thread per participant pair per listing
        UniqueConstraint("participant_low", "participant_high", "listing_id", name="uq_conversation_pair_listing"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("cnv"))

    # The two participants, stored as (min, max) so the pair has one spelling.
    participant_low: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)
    participant_high: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False, index=True)

    listing_id: Mapped[str] = mapped_column(String, ForeignKey("listings.id"), nullable=False, index=True)
    last_message_id: Mapped[str | None] = mapped_column(String, nullable=True)

    @property
    def participants(self) -> tuple[str, str]:
        return (self.participant_low, self.participant_high)

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def other_participant(self, user_id: str) -> str:
        return self.participant_high if user_id == self.participant_low else self.participant_low
