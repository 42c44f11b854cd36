"""Ailock progression engine: XP grants, level-ups, skill upgrades and achievement unlocks."""

from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis

from ailock.db.models import AilockAchievement, AilockXpEvent
from ailock.progression.level_curve import level_info
from ailock.progression.repository import AilockRepository
from ailock.progression.results import (
    INSUFFICIENT_POINTS,
    MAX_LEVEL,
    NOT_FOUND,
    PREREQUISITES_UNMET,
    SUCCESS,
    UNKNOWN_EVENT_TYPE,
    UNKNOWN_SKILL,
    FullProfile,
    GainResult,
    UpgradeResult,
)
from ailock.progression.rewards import EVENT_COUNTERS, describe_event, evaluate_achievements, xp_for_event
from ailock.progression.skill_tree import can_unlock_skill, get_skill

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Ailock"
STARTING_SKILL_POINTS = 1


class ProgressionEngine:
    """Owns every mutating operation on an Ailock profile.

    Each public mutation runs in the repository's session and commits before
    returning; a persistence error rolls the session back and propagates.
    """

    def __init__(
        self,
        repo: AilockRepository,
        redis: Redis | None = None,
        *,
        default_characteristic: int = 10,
        recent_history_limit: int = 10,
    ) -> None:
        self.repo = repo
        self.redis = redis
        self.default_characteristic = default_characteristic
        self.recent_history_limit = recent_history_limit

    # ── Profile ──

    async def get_or_create_profile(self, user_id: str) -> FullProfile:
        """Load the user's Ailock, creating it on first access."""
        profile = await self.repo.find_profile_by_user_id(user_id)
        if profile is None:
            c = self.default_characteristic
            created = await self.repo.insert_profile_if_absent(
                user_id,
                name=DEFAULT_NAME,
                level=1,
                xp=0,
                skill_points=STARTING_SKILL_POINTS,
                avatar_preset="robot",
                velocity=c,
                insight=c,
                efficiency=c,
                economy=c,
                convenience=c,
            )
            await self.repo.db.commit()
            if created is not None:
                logger.info("Created ailock %s for user %s", created.id, user_id)
            # A concurrent request may have won the insert; re-read either way.
            profile = await self.repo.find_profile_by_user_id(user_id)
            if profile is None:
                msg = f"Ailock for user {user_id} vanished after insert"
                raise RuntimeError(msg)

        return await self._assemble(profile)

    async def get_profile(self, ailock_id: str) -> FullProfile | None:
        profile = await self.repo.find_profile(ailock_id)
        if profile is None:
            return None
        return await self._assemble(profile)

    async def _assemble(self, profile: Any) -> FullProfile:
        skills = await self.repo.list_skills(profile.id)
        achievements = await self.repo.list_achievements(profile.id)
        history = await self.repo.list_recent_xp_history(profile.id, self.recent_history_limit)
        return FullProfile(
            profile=profile,
            skills=skills,
            achievements=achievements,
            recent_xp_history=history,
            total_interactions=profile.total_intents_created + profile.total_chat_messages,
        )

    async def rename(self, ailock_id: str, name: str) -> FullProfile | None:
        updated = await self.repo.update_profile(ailock_id, name=name)
        if updated is None:
            await self.repo.db.rollback()
            return None
        await self.repo.db.commit()
        return await self._assemble(updated)

    # ── XP ──

    async def gain_xp(
        self,
        ailock_id: str,
        event_type: str,
        context: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> GainResult:
        """Grant the fixed reward for `event_type`.

        1. Look up the reward; zero means no-op (nothing touches the DB)
        2. Atomically add it to ailocks.xp
        3. Recompute the level from the old and new totals
        4. Credit one skill point per level crossed and bump activity counters
        5. Append the XP history row and commit
        """
        amount = xp_for_event(event_type)
        if amount <= 0:
            return GainResult(outcome=UNKNOWN_EVENT_TYPE)

        try:
            new_xp = await self.repo.increment_xp(ailock_id, amount)
            if new_xp is None:
                await self.repo.db.rollback()
                return GainResult(outcome=NOT_FOUND)

            old_level = level_info(new_xp - amount)["level"]
            new_level = level_info(new_xp)["level"]
            levels_gained = max(0, new_level - old_level)

            await self.repo.apply_level_progress(
                ailock_id,
                level=new_level,
                skill_points_gained=levels_gained,
                counter=EVENT_COUNTERS.get(event_type),
            )
            await self.repo.insert_xp_event(
                ailock_id,
                event_type=event_type,
                xp_gained=amount,
                description=description or describe_event(event_type, amount),
                context=context or {},
            )
            await self.repo.db.commit()
        except Exception:
            await self.repo.db.rollback()
            raise

        if levels_gained:
            logger.info("Ailock %s leveled up %d -> %d", ailock_id, old_level, new_level)
            await self._publish(
                "pubsub:ailock_level_up",
                {
                    "ailock_id": ailock_id,
                    "old_level": old_level,
                    "new_level": new_level,
                    "skill_points_gained": levels_gained,
                },
            )

        return GainResult(
            outcome=SUCCESS,
            xp_gained=amount,
            new_xp=new_xp,
            new_level=new_level,
            leveled_up=levels_gained > 0,
            skill_points_gained=levels_gained,
        )

    async def get_xp_history(self, ailock_id: str, page: int, per_page: int) -> tuple[list[AilockXpEvent], int]:
        entries = await self.repo.list_xp_history(ailock_id, page, per_page)
        total = await self.repo.count_xp_history(ailock_id)
        return entries, total

    # ── Skills ──

    async def upgrade_skill(self, ailock_id: str, skill_id: str) -> UpgradeResult:
        """Spend one skill point to unlock `skill_id` or raise it one level."""
        profile = await self.repo.find_profile(ailock_id)
        if profile is None:
            return UpgradeResult(outcome=NOT_FOUND, skill_id=skill_id)

        skill = get_skill(skill_id)
        if skill is None:
            return UpgradeResult(outcome=UNKNOWN_SKILL, skill_id=skill_id)

        if profile.skill_points < 1:
            return UpgradeResult(
                outcome=INSUFFICIENT_POINTS, skill_id=skill_id, skill_points_remaining=profile.skill_points
            )

        owned = await self.repo.list_skills(ailock_id)
        unlocked_ids = [s.skill_id for s in owned if s.current_level > 0]
        if not can_unlock_skill(skill_id, unlocked_ids):
            return UpgradeResult(
                outcome=PREREQUISITES_UNMET, skill_id=skill_id, skill_points_remaining=profile.skill_points
            )

        existing = next((s for s in owned if s.skill_id == skill_id), None)
        if existing is not None and existing.current_level >= skill.max_level:
            return UpgradeResult(
                outcome=MAX_LEVEL,
                skill_id=skill_id,
                new_level=existing.current_level,
                skill_points_remaining=profile.skill_points,
            )

        try:
            if not await self.repo.spend_skill_point(ailock_id):
                await self.repo.db.rollback()
                return UpgradeResult(outcome=INSUFFICIENT_POINTS, skill_id=skill_id, skill_points_remaining=0)

            new_level: int | None = None
            if existing is None:
                created = await self.repo.insert_skill_if_absent(ailock_id, skill)
                if created is not None:
                    new_level = created.current_level
            if new_level is None:
                new_level = await self.repo.increment_skill_level(ailock_id, skill_id, skill.max_level)
            if new_level is None:
                # Lost a race to another upgrade that hit the cap first.
                await self.repo.db.rollback()
                return UpgradeResult(outcome=MAX_LEVEL, skill_id=skill_id, new_level=skill.max_level)

            await self.repo.db.commit()
        except Exception:
            await self.repo.db.rollback()
            raise

        refreshed = await self.repo.find_profile(ailock_id)
        logger.info("Ailock %s upgraded %s to level %d", ailock_id, skill_id, new_level)
        return UpgradeResult(
            outcome=SUCCESS,
            skill_id=skill_id,
            new_level=new_level,
            skill_points_remaining=refreshed.skill_points if refreshed else None,
        )

    # ── Achievements ──

    async def check_and_unlock_achievements(
        self,
        ailock_id: str,
        event_type: str,
        new_xp: int,
        new_level: int,
    ) -> list[AilockAchievement]:
        """Unlock every achievement whose rule holds. Returns only new unlocks.

        Repeat unlocks hit the (ailock_id, achievement_id) unique constraint
        and are ignored, so this is safe to call on every grant.
        """
        unlocked: list[AilockAchievement] = []
        try:
            for definition in evaluate_achievements(event_type, new_xp, new_level):
                row = await self.repo.insert_achievement_if_absent(ailock_id, definition)
                if row is not None:
                    unlocked.append(row)
            await self.repo.db.commit()
        except Exception:
            await self.repo.db.rollback()
            raise

        for row in unlocked:
            logger.info("Ailock %s unlocked achievement %s", ailock_id, row.achievement_id)
            await self._publish(
                "pubsub:ailock_achievement",
                {
                    "ailock_id": ailock_id,
                    "achievement_id": row.achievement_id,
                    "name": row.achievement_name,
                    "rarity": row.rarity,
                },
            )
        return unlocked

    # ── Notifications ──

    async def _publish(self, channel: str, payload: dict[str, Any]) -> None:
        """Best-effort Redis pub/sub broadcast for live dashboards."""
        if self.redis is None:
            return
        try:
            await self.redis.publish(channel, json.dumps(payload))
        except Exception:
            logger.warning("Failed to publish %s", channel, exc_info=True)
