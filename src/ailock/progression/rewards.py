"""Reward tables: XP per event type, achievement rules, avatar stages.

These values MUST match the frontend constants exactly.
"""

from __future__ import annotations

from dataclasses import dataclass

XP_REWARDS: dict[str, int] = {
    "chat_message_sent": 5,
    "voice_message_sent": 10,
    "intent_created": 25,
    "skill_used_successfully": 15,
    "achievement_unlocked": 50,
    "project_started": 30,
    "project_completed": 200,
    "first_login_today": 10,
}

# Activity counter on AilockProfile bumped by each event type.
EVENT_COUNTERS: dict[str, str] = {
    "intent_created": "total_intents_created",
    "chat_message_sent": "total_chat_messages",
    "voice_message_sent": "total_chat_messages",
    "skill_used_successfully": "total_skills_used",
}

RARITIES: tuple[str, ...] = ("common", "rare", "epic", "legendary")


def xp_for_event(event_type: str) -> int:
    """XP reward for an event type; 0 for anything not in the table."""
    return XP_REWARDS.get(event_type, 0)


def describe_event(event_type: str, amount: int) -> str:
    return f"Gained {amount} XP from {event_type.replace('_', ' ')}"


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    description: str
    icon: str
    rarity: str
    at_level: int | None = None
    min_xp: int | None = None
    event_type: str | None = None

    def is_met(self, event_type: str, new_xp: int, new_level: int) -> bool:
        if self.at_level is not None:
            return new_level == self.at_level
        if self.min_xp is not None:
            return new_xp >= self.min_xp
        if self.event_type is not None:
            return event_type == self.event_type
        return False


ACHIEVEMENTS: list[AchievementDefinition] = [
    AchievementDefinition(
        id="level_5",
        name="Rising Star",
        description="Reached level 5",
        icon="⭐",
        rarity="common",
        at_level=5,
    ),
    AchievementDefinition(
        id="level_10",
        name="AI Analyst",
        description="Reached level 10",
        icon="\U0001f9e0",
        rarity="rare",
        at_level=10,
    ),
    # Unreachable while MAX_LEVEL is 20; kept so raising the cap needs no migration.
    AchievementDefinition(
        id="level_25",
        name="AI Master",
        description="Reached level 25",
        icon="\U0001f451",
        rarity="epic",
        at_level=25,
    ),
    AchievementDefinition(
        id="xp_1000",
        name="XP Collector",
        description="Earned 1,000 total XP",
        icon="\U0001f48e",
        rarity="rare",
        min_xp=1000,
    ),
    AchievementDefinition(
        id="first_intent",
        name="First Intent",
        description="Created your first intent",
        icon="\U0001f3af",
        rarity="common",
        event_type="intent_created",
    ),
]

ACHIEVEMENTS_BY_ID: dict[str, AchievementDefinition] = {a.id: a for a in ACHIEVEMENTS}


def evaluate_achievements(event_type: str, new_xp: int, new_level: int) -> list[AchievementDefinition]:
    """Return every achievement whose condition holds right now.

    Rules are evaluated independently on every grant; callers rely on the
    storage-level unique constraint to make repeat unlocks no-ops.
    """
    return [a for a in ACHIEVEMENTS if a.is_met(event_type, new_xp, new_level)]


# ---------------------------------------------------------------------------
# Avatar stages
# ---------------------------------------------------------------------------

AVATAR_STAGES: list[tuple[int, str]] = [
    (50, "singularity"),
    (30, "master"),
    (20, "strategist"),
    (10, "analyst"),
    (1, "robot"),
]


def avatar_stage(level: int) -> str:
    for threshold, stage in AVATAR_STAGES:
        if level >= threshold:
            return stage
    return "robot"
