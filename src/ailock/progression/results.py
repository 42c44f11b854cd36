"""Result types returned by the progression engine.

Expected failures (unknown ids, not enough points, unmet prerequisites) are
reported through `outcome`, never raised; only persistence errors raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ailock.db.models import AilockAchievement, AilockProfile, AilockSkill, AilockXpEvent

# Outcomes
SUCCESS = "success"
NOT_FOUND = "not_found"
UNKNOWN_EVENT_TYPE = "unknown_event_type"
UNKNOWN_SKILL = "unknown_skill"
INSUFFICIENT_POINTS = "insufficient_points"
PREREQUISITES_UNMET = "prerequisites_unmet"
MAX_LEVEL = "max_level"


@dataclass
class FullProfile:
    """Profile plus everything the dashboard renders alongside it."""

    profile: AilockProfile
    skills: list[AilockSkill] = field(default_factory=list)
    achievements: list[AilockAchievement] = field(default_factory=list)
    recent_xp_history: list[AilockXpEvent] = field(default_factory=list)
    total_interactions: int = 0


@dataclass
class GainResult:
    outcome: str
    xp_gained: int = 0
    new_xp: int = 0
    new_level: int = 0
    leveled_up: bool = False
    skill_points_gained: int = 0

    @property
    def success(self) -> bool:
        return self.outcome == SUCCESS


@dataclass
class UpgradeResult:
    outcome: str
    skill_id: str
    new_level: int = 0
    skill_points_remaining: int | None = None

    @property
    def success(self) -> bool:
        return self.outcome == SUCCESS
