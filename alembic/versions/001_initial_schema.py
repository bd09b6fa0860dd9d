"""Initial FitSquad schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # -------------------------------------------------------------------------
    # Friends
    # -------------------------------------------------------------------------
    op.create_table(
        "friends",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("pin_hash", sa.Text(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # -------------------------------------------------------------------------
    # Workouts and badges
    # -------------------------------------------------------------------------
    op.create_table(
        "fitness_activities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("friend_id", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("activity_date", sa.Date(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("distance_km", sa.Float(), nullable=True),
        sa.Column("calories", sa.Integer(), nullable=True),
        sa.Column("heart_rate", sa.Integer(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="manual"),
        sa.Column("external_id", sa.String(length=50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["friend_id"], ["friends.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("friend_id", "external_id", name="uq_fitness_activity_friend_external"),
    )
    op.create_index("ix_fitness_activities_friend_id", "fitness_activities", ["friend_id"])
    op.create_index("ix_fitness_activities_category", "fitness_activities", ["category"])
    op.create_index("ix_fitness_activities_activity_date", "fitness_activities", ["activity_date"])
    op.create_index("ix_fitness_activities_external_id", "fitness_activities", ["external_id"])

    op.create_table(
        "fitness_badges",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("friend_id", sa.Integer(), nullable=False),
        sa.Column("badge_type", sa.String(length=50), nullable=False),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["friend_id"], ["friends.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("friend_id", "badge_type", name="uq_fitness_badge_friend_type"),
    )
    op.create_index("ix_fitness_badges_friend_id", "fitness_badges", ["friend_id"])

    # -------------------------------------------------------------------------
    # Strava
    # -------------------------------------------------------------------------
    op.create_table(
        "strava_connections",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("friend_id", sa.Integer(), nullable=False),
        sa.Column("athlete_id", sa.BigInteger(), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.BigInteger(), nullable=False),
        sa.Column("scope", sa.String(length=200), nullable=True),
        sa.Column("connected_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["friend_id"], ["friends.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("friend_id"),
    )
    op.create_index("ix_strava_connections_athlete_id", "strava_connections", ["athlete_id"])

    # -------------------------------------------------------------------------
    # Group fitness events
    # -------------------------------------------------------------------------
    op.create_table(
        "fitness_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("activity_id", sa.String(length=64), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("starts_at", sa.DateTime(), nullable=True),
        sa.Column("event_category", sa.String(length=20), nullable=False, server_default="run"),
        sa.Column("intensity_level", sa.String(length=20), nullable=True),
        sa.Column("meetup_location", sa.Text(), nullable=True),
        sa.Column("meetup_lat", sa.Float(), nullable=True),
        sa.Column("meetup_lng", sa.Float(), nullable=True),
        sa.Column("meetup_notes", sa.Text(), nullable=True),
        sa.Column("auto_log_workouts", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("points_override", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_fitness_events_activity_id", "fitness_events", ["activity_id"], unique=True)
    op.create_index("ix_fitness_events_event_date", "fitness_events", ["event_date"])

    op.create_table(
        "fitness_event_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("friend_id", sa.Integer(), nullable=False),
        sa.Column("rsvp_status", sa.String(length=20), nullable=False, server_default="invited"),
        sa.Column("attendance_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fitness_activity_id", sa.Integer(), nullable=True),
        sa.Column("bonus_points_awarded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["event_id"], ["fitness_events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["friend_id"], ["friends.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["fitness_activity_id"], ["fitness_activities.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_id", "friend_id", name="uq_fitness_event_participant"),
    )
    op.create_index("ix_fitness_event_participants_event_id", "fitness_event_participants", ["event_id"])
    op.create_index("ix_fitness_event_participants_friend_id", "fitness_event_participants", ["friend_id"])
    op.create_index(
        "ix_fitness_event_participants_attendance_status",
        "fitness_event_participants",
        ["attendance_status"],
    )


def downgrade() -> None:
    # Reverse order of creation (respect foreign keys)
    op.drop_table("fitness_event_participants")
    op.drop_table("fitness_events")
    op.drop_table("strava_connections")
    op.drop_table("fitness_badges")
    op.drop_table("fitness_activities")
    op.drop_table("friends")
