"""Badge unlock model."""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fitsquad.models.base import BaseModel

if TYPE_CHECKING:
    from fitsquad.models.friend import Friend


class FitnessBadge(BaseModel):
    """A badge unlocked by a friend. Never revoked."""

    __tablename__ = "fitness_badges"
    __table_args__ = (
        UniqueConstraint("friend_id", "badge_type", name="uq_fitness_badge_friend_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    friend_id: Mapped[int] = mapped_column(
        ForeignKey("friends.id", ondelete="CASCADE"),
        index=True,
    )
    badge_type: Mapped[str] = mapped_column(String(50))
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    # "metadata" is reserved on declarative classes
    badge_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    # Relationship
    friend: Mapped["Friend"] = relationship("Friend", back_populates="badges")

    def __repr__(self) -> str:
        return f"<FitnessBadge(friend_id={self.friend_id}, type={self.badge_type})>"
