"""Persistence gateway for Ailock progression records.

Pure data access over an AsyncSession: no business rules and no commits
(the engine owns the transaction). Every read-modify-write the engine needs
is expressed as a single conditional UPDATE or an INSERT ... ON CONFLICT DO
NOTHING so concurrent requests cannot lose updates or double-insert.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ailock.db.models import AilockAchievement, AilockProfile, AilockSkill, AilockXpEvent
from ailock.progression.rewards import AchievementDefinition
from ailock.progression.skill_tree import SkillDefinition

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class AilockRepository:
    """Data access for ailocks, skills, XP history, and achievements."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _insert(self, model: type) -> Any:
        """Dialect insert construct supporting ON CONFLICT DO NOTHING."""
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERT_BY_DIALECT[dialect](model)
        except KeyError:
            msg = f"Unsupported database dialect for conflict-free inserts: {dialect}"
            raise NotImplementedError(msg) from None

    async def _insert_ignoring_conflict(self, model: type, index_elements: list[str], values: dict) -> Any:
        stmt = (
            self._insert(model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=index_elements)
            .returning(model)
        )
        result = await self.db.scalars(stmt, execution_options={"populate_existing": True})
        return result.one_or_none()

    # ── Profiles ──

    async def find_profile(self, ailock_id: str) -> AilockProfile | None:
        result = await self.db.execute(
            select(AilockProfile)
            .where(AilockProfile.id == ailock_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_profile_by_user_id(self, user_id: str) -> AilockProfile | None:
        result = await self.db.execute(
            select(AilockProfile)
            .where(AilockProfile.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def insert_profile_if_absent(self, user_id: str, **values: Any) -> AilockProfile | None:
        """Insert a profile for `user_id`. Returns None if one already exists."""
        return await self._insert_ignoring_conflict(
            AilockProfile, ["user_id"], {"user_id": user_id, **values}
        )

    async def update_profile(self, ailock_id: str, **patch: Any) -> AilockProfile | None:
        result = await self.db.scalars(
            update(AilockProfile)
            .where(AilockProfile.id == ailock_id)
            .values(**patch, updated_at=datetime.now(timezone.utc))
            .returning(AilockProfile),
            execution_options={"populate_existing": True},
        )
        return result.one_or_none()

    async def increment_xp(self, ailock_id: str, amount: int) -> int | None:
        """Atomically add XP. Returns the new total, or None if no such ailock.

        On PostgreSQL the UPDATE also takes the row lock, serializing the
        rest of the grant for this ailock until commit.
        """
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(AilockProfile)
            .where(AilockProfile.id == ailock_id)
            .values(xp=AilockProfile.xp + amount, last_active_at=now, updated_at=now)
            .returning(AilockProfile.xp)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def apply_level_progress(
        self,
        ailock_id: str,
        level: int,
        skill_points_gained: int,
        counter: str | None = None,
    ) -> None:
        values: dict[str, Any] = {
            "level": level,
            "skill_points": AilockProfile.skill_points + skill_points_gained,
        }
        if counter is not None:
            values[counter] = getattr(AilockProfile, counter) + 1
        await self.db.execute(
            update(AilockProfile)
            .where(AilockProfile.id == ailock_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def spend_skill_point(self, ailock_id: str) -> bool:
        """Decrement skill_points only if at least one is available."""
        result = await self.db.execute(
            update(AilockProfile)
            .where(AilockProfile.id == ailock_id, AilockProfile.skill_points >= 1)
            .values(
                skill_points=AilockProfile.skill_points - 1,
                updated_at=datetime.now(timezone.utc),
            )
            .returning(AilockProfile.skill_points)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    # ── Skills ──

    async def list_skills(self, ailock_id: str) -> list[AilockSkill]:
        result = await self.db.execute(
            select(AilockSkill)
            .where(AilockSkill.ailock_id == ailock_id)
            .order_by(AilockSkill.unlocked_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def find_skill(self, ailock_id: str, skill_id: str) -> AilockSkill | None:
        result = await self.db.execute(
            select(AilockSkill)
            .where(AilockSkill.ailock_id == ailock_id, AilockSkill.skill_id == skill_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def insert_skill_if_absent(self, ailock_id: str, skill: SkillDefinition) -> AilockSkill | None:
        """Create the skill record at level 1. Returns None if it already exists."""
        now = datetime.now(timezone.utc)
        return await self._insert_ignoring_conflict(
            AilockSkill,
            ["ailock_id", "skill_id"],
            {
                "ailock_id": ailock_id,
                "skill_id": skill.id,
                "skill_name": skill.name,
                "branch": skill.branch,
                "current_level": 1,
                "unlocked_at": now,
                "updated_at": now,
            },
        )

    async def increment_skill_level(self, ailock_id: str, skill_id: str, max_level: int) -> int | None:
        """Raise a skill by one level unless already at `max_level`. Returns the new level."""
        result = await self.db.execute(
            update(AilockSkill)
            .where(
                AilockSkill.ailock_id == ailock_id,
                AilockSkill.skill_id == skill_id,
                AilockSkill.current_level < max_level,
            )
            .values(
                current_level=AilockSkill.current_level + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .returning(AilockSkill.current_level)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    # ── XP history ──

    async def insert_xp_event(
        self,
        ailock_id: str,
        event_type: str,
        xp_gained: int,
        description: str,
        context: dict[str, Any],
    ) -> AilockXpEvent:
        event = AilockXpEvent(
            ailock_id=ailock_id,
            event_type=event_type,
            xp_gained=xp_gained,
            description=description,
            context=context,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def list_recent_xp_history(self, ailock_id: str, limit: int) -> list[AilockXpEvent]:
        result = await self.db.execute(
            select(AilockXpEvent)
            .where(AilockXpEvent.ailock_id == ailock_id)
            .order_by(AilockXpEvent.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_xp_history(self, ailock_id: str, page: int, per_page: int) -> list[AilockXpEvent]:
        result = await self.db.execute(
            select(AilockXpEvent)
            .where(AilockXpEvent.ailock_id == ailock_id)
            .order_by(AilockXpEvent.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return list(result.scalars().all())

    async def count_xp_history(self, ailock_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(AilockXpEvent).where(AilockXpEvent.ailock_id == ailock_id)
        )
        return result.scalar_one()

    # ── Achievements ──

    async def list_achievements(self, ailock_id: str) -> list[AilockAchievement]:
        result = await self.db.execute(
            select(AilockAchievement)
            .where(AilockAchievement.ailock_id == ailock_id)
            .order_by(AilockAchievement.unlocked_at.asc())
        )
        return list(result.scalars().all())

    async def find_achievement(self, ailock_id: str, achievement_id: str) -> AilockAchievement | None:
        result = await self.db.execute(
            select(AilockAchievement).where(
                AilockAchievement.ailock_id == ailock_id,
                AilockAchievement.achievement_id == achievement_id,
            )
        )
        return result.scalar_one_or_none()

    async def insert_achievement_if_absent(
        self, ailock_id: str, achievement: AchievementDefinition
    ) -> AilockAchievement | None:
        """Unlock an achievement. Returns None if it was already unlocked."""
        return await self._insert_ignoring_conflict(
            AilockAchievement,
            ["ailock_id", "achievement_id"],
            {
                "ailock_id": ailock_id,
                "achievement_id": achievement.id,
                "achievement_name": achievement.name,
                "description": achievement.description,
                "icon": achievement.icon,
                "rarity": achievement.rarity,
                "unlocked_at": datetime.now(timezone.utc),
            },
        )
