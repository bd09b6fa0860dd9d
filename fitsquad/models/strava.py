"""Strava integration models."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fitsquad.models.base import BaseModel

if TYPE_CHECKING:
    from fitsquad.models.friend import Friend


class StravaConnection(BaseModel):
    """Strava OAuth credentials for one friend."""

    __tablename__ = "strava_connections"

    id: Mapped[int] = mapped_column(primary_key=True)
    friend_id: Mapped[int] = mapped_column(
        ForeignKey("friends.id", ondelete="CASCADE"),
        unique=True,
    )
    athlete_id: Mapped[int] = mapped_column(BigInteger, index=True)

    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str] = mapped_column(Text)
    # Epoch seconds, as returned by Strava
    expires_at: Mapped[int] = mapped_column(BigInteger)
    scope: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    connected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationship
    friend: Mapped["Friend"] = relationship("Friend", back_populates="strava_connection")

    def __repr__(self) -> str:
        return f"<StravaConnection(friend_id={self.friend_id}, athlete_id={self.athlete_id})>"
