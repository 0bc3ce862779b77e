"""Baseline schema: users, repositories, analysis_results.

Revision ID: 0001_baseline
Revises: None
Create Date: 2026-10-19

Idempotent (IF NOT EXISTS throughout) so it can be applied to a database
that already carries the tables.
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_baseline"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            github_login    VARCHAR(255) NOT NULL,
            access_token    TEXT,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS repositories (
            id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id           UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            full_name         VARCHAR(500) NOT NULL,
            default_branch    VARCHAR(255) NOT NULL DEFAULT 'main',
            language          VARCHAR(100),
            last_analyzed_at  TIMESTAMPTZ,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_repositories_user_id ON repositories(user_id)"
    )

    op.execute("""
        CREATE TABLE IF NOT EXISTS analysis_results (
            id                     UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            repository_id          UUID NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
            user_id                UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            commit_sha             VARCHAR(64) NOT NULL,
            branch                 VARCHAR(255) NOT NULL,
            analysis_type          VARCHAR(20) NOT NULL DEFAULT 'full'
                                   CHECK (analysis_type IN ('full', 'incremental', 'pr')),
            triggered_by           VARCHAR(20) NOT NULL DEFAULT 'manual'
                                   CHECK (triggered_by IN ('webhook', 'manual', 'scheduled')),
            overall_score          DOUBLE PRECISION NOT NULL,
            quality_score          DOUBLE PRECISION NOT NULL,
            security_score         DOUBLE PRECISION NOT NULL,
            performance_score      DOUBLE PRECISION NOT NULL,
            maintainability_score  DOUBLE PRECISION NOT NULL,
            total_lines            INTEGER NOT NULL DEFAULT 0,
            total_files            INTEGER NOT NULL DEFAULT 0,
            code_complexity        DOUBLE PRECISION NOT NULL DEFAULT 0,
            duplicate_lines        INTEGER NOT NULL DEFAULT 0,
            critical_issues        INTEGER NOT NULL DEFAULT 0,
            major_issues           INTEGER NOT NULL DEFAULT 0,
            minor_issues           INTEGER NOT NULL DEFAULT 0,
            suggestions            INTEGER NOT NULL DEFAULT 0,
            detailed_results       JSONB NOT NULL DEFAULT '{}'::jsonb,
            ai_insights            JSONB NOT NULL DEFAULT '{}'::jsonb,
            ai_summary             TEXT,
            ai_degraded            BOOLEAN NOT NULL DEFAULT false,
            ai_degraded_reason     TEXT,
            created_at             TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_analysis_results_repository_created "
        "ON analysis_results(repository_id, created_at DESC)"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS idx_analysis_results_created "
        "ON analysis_results(created_at)"
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.execute("DROP TABLE IF EXISTS analysis_results CASCADE")
    op.execute("DROP TABLE IF EXISTS repositories CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
