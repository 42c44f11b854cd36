"""Ailock progression API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ailock.config import Settings, get_settings
from ailock.db.models import AilockAchievement, AilockSkill, AilockXpEvent
from ailock.dependencies import get_db, get_redis_dep
from ailock.progression.engine import ProgressionEngine
from ailock.progression.level_curve import MAX_LEVEL, level_info, level_table
from ailock.progression.repository import AilockRepository
from ailock.progression.results import (
    INSUFFICIENT_POINTS,
    MAX_LEVEL as MAX_SKILL_LEVEL,
    NOT_FOUND,
    PREREQUISITES_UNMET,
    UNKNOWN_SKILL,
    FullProfile,
)
from ailock.progression.rewards import avatar_stage, xp_for_event
from ailock.progression.schemas import (
    AchievementResponse,
    AllLevelsResponse,
    GainXPRequest,
    GainXPResponse,
    LevelEntry,
    LevelInfoResponse,
    ProfileEnvelope,
    ProfileResponse,
    RenameRequest,
    SkillBranchResponse,
    SkillDefinitionResponse,
    SkillResponse,
    SkillTreeResponse,
    UpgradeSkillRequest,
    UpgradeSkillResponse,
    XPEventResponse,
    XPHistoryResponse,
)
from ailock.progression.skill_tree import (
    BRANCH_COLORS,
    BRANCH_NAMES,
    BRANCHES,
    SKILL_TREE,
    get_skill_effect,
    get_skills_by_branch,
)
from ailock.retry import run_with_retry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Ailock"])

_UPGRADE_ERRORS: dict[str, tuple[int, str]] = {
    NOT_FOUND: (404, "Ailock profile not found"),
    UNKNOWN_SKILL: (404, "Unknown skill"),
    INSUFFICIENT_POINTS: (400, "Not enough skill points"),
    PREREQUISITES_UNMET: (400, "Skill prerequisites not met"),
    MAX_SKILL_LEVEL: (400, "Skill is already at maximum level"),
}


def get_progression_engine(
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis_dep),
    settings: Settings = Depends(get_settings),
) -> ProgressionEngine:
    return ProgressionEngine(
        AilockRepository(db),
        redis,
        default_characteristic=settings.default_characteristic,
        recent_history_limit=settings.recent_xp_history_limit,
    )


# ── Serialization ──


def _skill_response(skill: AilockSkill) -> SkillResponse:
    definition = SKILL_TREE.get(skill.skill_id)
    return SkillResponse(
        skill_id=skill.skill_id,
        skill_name=skill.skill_name,
        branch=skill.branch,
        current_level=skill.current_level,
        max_level=definition.max_level if definition else skill.current_level,
        effect=get_skill_effect(skill.skill_id, skill.current_level),
        usage_count=skill.usage_count,
        success_rate=skill.success_rate,
        last_used_at=skill.last_used_at,
        unlocked_at=skill.unlocked_at,
    )


def _achievement_response(a: AilockAchievement) -> AchievementResponse:
    return AchievementResponse(
        achievement_id=a.achievement_id,
        name=a.achievement_name,
        description=a.description,
        icon=a.icon,
        rarity=a.rarity,
        unlocked_at=a.unlocked_at,
    )


def _xp_event_response(e: AilockXpEvent) -> XPEventResponse:
    return XPEventResponse(
        event_type=e.event_type,
        xp_gained=e.xp_gained,
        description=e.description,
        context=e.context or {},
        created_at=e.created_at,
    )


def _profile_response(full: FullProfile) -> ProfileResponse:
    p = full.profile
    info = level_info(p.xp)
    return ProfileResponse(
        id=p.id,
        user_id=p.user_id,
        name=p.name,
        level=info["level"],
        xp=p.xp,
        skill_points=p.skill_points,
        avatar_preset=p.avatar_preset,
        avatar_stage=avatar_stage(info["level"]),
        characteristics=p.characteristics,
        level_info=LevelInfoResponse(**info),
        progress_to_next_level=info["progress_percentage"],
        skills=[_skill_response(s) for s in full.skills],
        achievements=[_achievement_response(a) for a in full.achievements],
        recent_xp_history=[_xp_event_response(e) for e in full.recent_xp_history],
        total_interactions=full.total_interactions,
        total_intents_created=p.total_intents_created,
        total_chat_messages=p.total_chat_messages,
        total_skills_used=p.total_skills_used,
        last_active_at=p.last_active_at,
        created_at=p.created_at,
    )


async def _resolve_ailock_id(
    engine: ProgressionEngine,
    ailock_id: str | None,
    user_id: str | None,
    *,
    create: bool,
) -> str:
    """Explicit ailock id wins; otherwise look the Ailock up by its user."""
    if ailock_id:
        return ailock_id
    if create:
        full = await engine.get_or_create_profile(user_id)  # type: ignore[arg-type]
        return full.profile.id
    profile = await engine.repo.find_profile_by_user_id(user_id)  # type: ignore[arg-type]
    if profile is None:
        raise HTTPException(status_code=404, detail="Ailock profile not found")
    return profile.id


# ── Profile ──


@router.get("/ailock-profile", response_model=ProfileEnvelope)
async def get_ailock_profile(
    user_id: str = Query(..., alias="userId", min_length=1, max_length=64),
    engine: ProgressionEngine = Depends(get_progression_engine),
    settings: Settings = Depends(get_settings),
):
    """Get (or lazily create) the user's Ailock with skills, achievements, and recent XP."""
    full = await run_with_retry(
        engine.repo.db,
        lambda: engine.get_or_create_profile(user_id),
        operation_name="ailock.get_or_create_profile",
        max_attempts=settings.db_retry_max_attempts,
        backoff_ms=settings.db_retry_backoff_ms,
    )
    return ProfileEnvelope(profile=_profile_response(full))


@router.patch("/ailock-profile/{ailock_id}", response_model=ProfileEnvelope)
async def rename_ailock(
    ailock_id: str,
    body: RenameRequest,
    engine: ProgressionEngine = Depends(get_progression_engine),
):
    """Change the Ailock's display name."""
    full = await engine.rename(ailock_id, body.name.strip() or "Ailock")
    if full is None:
        raise HTTPException(status_code=404, detail="Ailock profile not found")
    return ProfileEnvelope(profile=_profile_response(full))


@router.get("/ailock-profile/{ailock_id}/xp-history", response_model=XPHistoryResponse)
async def get_xp_history(
    ailock_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    engine: ProgressionEngine = Depends(get_progression_engine),
):
    """Paginated XP history, newest first."""
    if await engine.repo.find_profile(ailock_id) is None:
        raise HTTPException(status_code=404, detail="Ailock profile not found")
    entries, total = await engine.get_xp_history(ailock_id, page, per_page)
    return XPHistoryResponse(
        entries=[_xp_event_response(e) for e in entries],
        total=total,
        page=page,
        per_page=per_page,
    )


# ── Actions ──


@router.post("/ailock-gain-xp", response_model=GainXPResponse)
async def gain_xp(
    body: GainXPRequest,
    engine: ProgressionEngine = Depends(get_progression_engine),
    settings: Settings = Depends(get_settings),
):
    """Grant XP for an event, then unlock any achievements it qualifies for."""
    # Zero-XP event types never touch the database, not even to create the profile.
    if xp_for_event(body.event_type) <= 0:
        raise HTTPException(status_code=400, detail=f"Unknown event type: {body.event_type}")

    db = engine.repo.db
    ailock_id = await _resolve_ailock_id(engine, body.ailock_id, body.user_id, create=True)

    result = await run_with_retry(
        db,
        lambda: engine.gain_xp(ailock_id, body.event_type, body.context, body.description),
        operation_name="ailock.gain_xp",
        max_attempts=settings.db_retry_max_attempts,
        backoff_ms=settings.db_retry_backoff_ms,
    )
    if result.outcome == NOT_FOUND:
        raise HTTPException(status_code=404, detail="Ailock profile not found")

    # Achievements are decoration: a failure here never fails the grant.
    unlocked: list[AilockAchievement] = []
    try:
        unlocked = await engine.check_and_unlock_achievements(
            ailock_id, body.event_type, result.new_xp, result.new_level
        )
    except SQLAlchemyError:
        logger.warning("Achievement check failed for ailock %s", ailock_id, exc_info=True)

    return GainXPResponse(
        success=True,
        ailock_id=ailock_id,
        xp_gained=result.xp_gained,
        new_xp=result.new_xp,
        new_level=result.new_level,
        leveled_up=result.leveled_up,
        skill_points_gained=result.skill_points_gained,
        achievements_unlocked=[_achievement_response(a) for a in unlocked],
    )


@router.post("/ailock-upgrade-skill", response_model=UpgradeSkillResponse)
async def upgrade_skill(
    body: UpgradeSkillRequest,
    engine: ProgressionEngine = Depends(get_progression_engine),
    settings: Settings = Depends(get_settings),
):
    """Spend a skill point to unlock or upgrade a skill."""
    ailock_id = await _resolve_ailock_id(engine, body.ailock_id, body.user_id, create=False)

    result = await run_with_retry(
        engine.repo.db,
        lambda: engine.upgrade_skill(ailock_id, body.skill_id),
        operation_name="ailock.upgrade_skill",
        max_attempts=settings.db_retry_max_attempts,
        backoff_ms=settings.db_retry_backoff_ms,
    )
    if not result.success:
        status_code, detail = _UPGRADE_ERRORS[result.outcome]
        raise HTTPException(status_code=status_code, detail=detail)

    name = SKILL_TREE[body.skill_id].name
    message = f"{name} unlocked" if result.new_level == 1 else f"{name} upgraded to level {result.new_level}"
    return UpgradeSkillResponse(
        success=True,
        ailock_id=ailock_id,
        skill_id=body.skill_id,
        new_level=result.new_level,
        skill_points_remaining=result.skill_points_remaining,
        message=message,
    )


# ── Static reference data ──


@router.get("/ailock/skill-tree", response_model=SkillTreeResponse)
async def get_skill_tree():
    """The full skill tree grouped by branch."""
    return SkillTreeResponse(
        branches=[
            SkillBranchResponse(
                id=branch,
                name=BRANCH_NAMES[branch],
                color=BRANCH_COLORS[branch],
                skills=[
                    SkillDefinitionResponse(
                        id=s.id,
                        name=s.name,
                        description=s.description,
                        branch=s.branch,
                        max_level=s.max_level,
                        prerequisites=list(s.prerequisites),
                        effects=list(s.effects),
                    )
                    for s in get_skills_by_branch(branch)
                ],
            )
            for branch in BRANCHES
        ]
    )


@router.get("/ailock/levels", response_model=AllLevelsResponse)
async def list_levels():
    """Get all level definitions."""
    return AllLevelsResponse(
        max_level=MAX_LEVEL,
        levels=[LevelEntry(**row) for row in level_table()],
    )
