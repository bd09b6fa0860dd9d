"""Friend model.

Friends and groups are managed by the wider trips application; this table
mirrors the columns the fitness core reads.
"""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fitsquad.models.base import BaseModel

if TYPE_CHECKING:
    from fitsquad.models.workout import WorkoutRecord
    from fitsquad.models.badge import FitnessBadge
    from fitsquad.models.strava import StravaConnection


class Friend(BaseModel):
    """A squad member."""

    __tablename__ = "friends"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pin_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    workouts: Mapped[list["WorkoutRecord"]] = relationship(
        "WorkoutRecord",
        back_populates="friend",
        cascade="all, delete-orphan",
    )
    badges: Mapped[list["FitnessBadge"]] = relationship(
        "FitnessBadge",
        back_populates="friend",
        cascade="all, delete-orphan",
    )
    strava_connection: Mapped[Optional["StravaConnection"]] = relationship(
        "StravaConnection",
        back_populates="friend",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Friend(id={self.id}, name={self.name})>"
