"""Pydantic request/response models for Ailock endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Request(BaseModel):
    """Accepts camelCase keys from the web client as well as snake_case."""

    model_config = ConfigDict(populate_by_name=True)


class _TargetRequest(_Request):
    user_id: str | None = Field(default=None, alias="userId", max_length=64)
    ailock_id: str | None = Field(default=None, alias="ailockId", max_length=36)

    @model_validator(mode="after")
    def _require_target(self) -> _TargetRequest:
        if not self.user_id and not self.ailock_id:
            msg = "userId or ailockId is required"
            raise ValueError(msg)
        return self


# --- Requests ---


class GainXPRequest(_TargetRequest):
    event_type: str = Field(alias="eventType", min_length=1, max_length=64)
    context: dict[str, Any] = {}
    description: str | None = Field(default=None, max_length=256)


class UpgradeSkillRequest(_TargetRequest):
    skill_id: str = Field(alias="skillId", min_length=1, max_length=64)


class RenameRequest(_Request):
    name: str = Field(min_length=1, max_length=64)


# --- Profile ---


class LevelInfoResponse(BaseModel):
    level: int
    current_xp: int
    total_xp_for_current_level: int
    progress_xp: int
    xp_needed_for_next_level: int
    xp_to_next_level: int
    progress_percentage: float


class SkillResponse(BaseModel):
    skill_id: str
    skill_name: str
    branch: str
    current_level: int
    max_level: int
    effect: str
    usage_count: int
    success_rate: float
    last_used_at: datetime | None = None
    unlocked_at: datetime | None = None


class AchievementResponse(BaseModel):
    achievement_id: str
    name: str
    description: str
    icon: str
    rarity: str
    unlocked_at: datetime


class XPEventResponse(BaseModel):
    event_type: str
    xp_gained: int
    description: str | None = None
    context: dict[str, Any] = {}
    created_at: datetime


class ProfileResponse(BaseModel):
    id: str
    user_id: str
    name: str
    level: int
    xp: int
    skill_points: int
    avatar_preset: str
    avatar_stage: str
    characteristics: dict[str, int]
    level_info: LevelInfoResponse
    progress_to_next_level: float
    skills: list[SkillResponse]
    achievements: list[AchievementResponse]
    recent_xp_history: list[XPEventResponse]
    total_interactions: int
    total_intents_created: int
    total_chat_messages: int
    total_skills_used: int
    last_active_at: datetime | None = None
    created_at: datetime


class ProfileEnvelope(BaseModel):
    success: bool = True
    profile: ProfileResponse


# --- Actions ---


class GainXPResponse(BaseModel):
    success: bool
    ailock_id: str
    xp_gained: int
    new_xp: int
    new_level: int
    leveled_up: bool
    skill_points_gained: int
    achievements_unlocked: list[AchievementResponse] = []


class UpgradeSkillResponse(BaseModel):
    success: bool
    ailock_id: str
    skill_id: str
    new_level: int
    skill_points_remaining: int | None = None
    message: str


class XPHistoryResponse(BaseModel):
    entries: list[XPEventResponse]
    total: int
    page: int
    per_page: int


# --- Static reference data ---


class SkillDefinitionResponse(BaseModel):
    id: str
    name: str
    description: str
    branch: str
    max_level: int
    prerequisites: list[str]
    effects: list[str]


class SkillBranchResponse(BaseModel):
    id: str
    name: str
    color: str
    skills: list[SkillDefinitionResponse]


class SkillTreeResponse(BaseModel):
    branches: list[SkillBranchResponse]


class LevelEntry(BaseModel):
    level: int
    xp_required: int
    cumulative: int


class AllLevelsResponse(BaseModel):
    max_level: int
    levels: list[LevelEntry]
