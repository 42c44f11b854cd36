"""ORM models for the Ailock progression tables.

Table layout matches alembic/versions/001_ailock_tables.py. Column types are
kept portable (JSONB only on PostgreSQL) so the same models back the
in-memory SQLite database used by the test suite.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ailock.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class AilockProfile(Base):
    """One Ailock per user. `level` is always derived from `xp`."""

    __tablename__ = "ailocks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False, default="Ailock")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    skill_points: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    avatar_preset: Mapped[str] = mapped_column(String(32), nullable=False, default="robot")

    # --- Characteristics (cosmetic stat block) ---
    velocity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    insight: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    efficiency: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    economy: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    convenience: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    # --- Activity counters ---
    total_intents_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_chat_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_skills_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def characteristics(self) -> dict[str, int]:
        return {
            "velocity": self.velocity,
            "insight": self.insight,
            "efficiency": self.efficiency,
            "economy": self.economy,
            "convenience": self.convenience,
        }


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------


class AilockSkill(Base):
    """Unlocked skill. A row exists only once the skill reached level 1."""

    __tablename__ = "ailock_skills"
    __table_args__ = (
        UniqueConstraint("ailock_id", "skill_id", name="uq_ailock_skills_ailock_skill"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    ailock_id: Mapped[str] = mapped_column(String(36), ForeignKey("ailocks.id", ondelete="CASCADE"), nullable=False)
    skill_id: Mapped[str] = mapped_column(String(64), nullable=False)
    skill_name: Mapped[str] = mapped_column(String(128), nullable=False)
    branch: Mapped[str] = mapped_column(String(32), nullable=False)
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    success_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unlocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    ailock: Mapped[AilockProfile] = relationship("AilockProfile")


# ---------------------------------------------------------------------------
# XP history
# ---------------------------------------------------------------------------


class AilockXpEvent(Base):
    """Append-only XP history. Never updated or deleted."""

    __tablename__ = "ailock_xp_history"
    __table_args__ = (
        Index("idx_ailock_xp_history_ailock_created", "ailock_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    ailock_id: Mapped[str] = mapped_column(String(36), ForeignKey("ailocks.id", ondelete="CASCADE"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    xp_gained: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    context: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class AilockAchievement(Base):
    """Unlocked achievement. UNIQUE(ailock_id, achievement_id) makes unlocks idempotent."""

    __tablename__ = "ailock_achievements"
    __table_args__ = (
        UniqueConstraint("ailock_id", "achievement_id", name="uq_ailock_achievements_ailock_achievement"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    ailock_id: Mapped[str] = mapped_column(String(36), ForeignKey("ailocks.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    achievement_name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="\U0001f3c6")
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common")
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
