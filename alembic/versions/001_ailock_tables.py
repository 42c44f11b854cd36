"""Ailock progression tables — profiles, skills, XP history, achievements.

The UNIQUE constraints on (ailock_id, skill_id) and (ailock_id,
achievement_id) are what make skill creation and achievement unlocks
idempotent under concurrent requests.

Revision ID: 001_ailock_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa  # noqa: F401
from alembic import op

revision: str = "001_ailock_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS ailocks (
            id                    VARCHAR(36) PRIMARY KEY,
            user_id               VARCHAR(64) NOT NULL,
            name                  VARCHAR(64) NOT NULL DEFAULT 'Ailock',
            level                 INT NOT NULL DEFAULT 1,
            xp                    INT NOT NULL DEFAULT 0 CHECK (xp >= 0),
            skill_points          INT NOT NULL DEFAULT 1 CHECK (skill_points >= 0),
            avatar_preset         VARCHAR(32) NOT NULL DEFAULT 'robot',
            velocity              INT NOT NULL DEFAULT 10,
            insight               INT NOT NULL DEFAULT 10,
            efficiency            INT NOT NULL DEFAULT 10,
            economy               INT NOT NULL DEFAULT 10,
            convenience           INT NOT NULL DEFAULT 10,
            total_intents_created INT NOT NULL DEFAULT 0,
            total_chat_messages   INT NOT NULL DEFAULT 0,
            total_skills_used     INT NOT NULL DEFAULT 0,
            last_active_at        TIMESTAMPTZ,
            created_at            TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at            TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_ailocks_user_id UNIQUE (user_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS ailock_skills (
            id            VARCHAR(36) PRIMARY KEY,
            ailock_id     VARCHAR(36) NOT NULL REFERENCES ailocks(id) ON DELETE CASCADE,
            skill_id      VARCHAR(64) NOT NULL,
            skill_name    VARCHAR(128) NOT NULL,
            branch        VARCHAR(32) NOT NULL,
            current_level INT NOT NULL DEFAULT 1 CHECK (current_level >= 1),
            usage_count   INT NOT NULL DEFAULT 0,
            success_rate  DOUBLE PRECISION NOT NULL DEFAULT 0,
            last_used_at  TIMESTAMPTZ,
            unlocked_at   TIMESTAMPTZ DEFAULT now(),
            updated_at    TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_ailock_skills_ailock_skill UNIQUE (ailock_id, skill_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS ailock_xp_history (
            id          VARCHAR(36) PRIMARY KEY,
            ailock_id   VARCHAR(36) NOT NULL REFERENCES ailocks(id) ON DELETE CASCADE,
            event_type  VARCHAR(64) NOT NULL,
            xp_gained   INT NOT NULL,
            description VARCHAR(256),
            context     JSONB NOT NULL DEFAULT '{}',
            created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_ailock_xp_history_ailock_created
        ON ailock_xp_history (ailock_id, created_at DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS ailock_achievements (
            id               VARCHAR(36) PRIMARY KEY,
            ailock_id        VARCHAR(36) NOT NULL REFERENCES ailocks(id) ON DELETE CASCADE,
            achievement_id   VARCHAR(64) NOT NULL,
            achievement_name VARCHAR(128) NOT NULL,
            description      TEXT NOT NULL DEFAULT '',
            icon             VARCHAR(16) NOT NULL DEFAULT '',
            rarity           VARCHAR(16) NOT NULL DEFAULT 'common'
                             CHECK (rarity IN ('common', 'rare', 'epic', 'legendary')),
            unlocked_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_ailock_achievements_ailock_achievement UNIQUE (ailock_id, achievement_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ailock_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS ailock_xp_history CASCADE")
    op.execute("DROP TABLE IF EXISTS ailock_skills CASCADE")
    op.execute("DROP TABLE IF EXISTS ailocks CASCADE")
