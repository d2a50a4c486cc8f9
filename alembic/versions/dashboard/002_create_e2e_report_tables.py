"""create_e2e_report_tables

Revision ID: dashboard_002
Revises: dashboard_001
Create Date: 2025-10-01 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "dashboard_002"
down_revision = "dashboard_001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS e2e_report_summaries (
            id SERIAL PRIMARY KEY,
            date DATE NOT NULL UNIQUE,
            status VARCHAR(20) NOT NULL DEFAULT 'pending'
                CHECK (status IN ('ready', 'pending', 'failed')),
            total_runs INTEGER NOT NULL DEFAULT 0,
            passed_runs INTEGER NOT NULL DEFAULT 0,
            failed_runs INTEGER NOT NULL DEFAULT 0,
            success_rate NUMERIC(5, 4) NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS e2e_report_details (
            id SERIAL PRIMARY KEY,
            report_summary_id INTEGER NOT NULL
                REFERENCES e2e_report_summaries (id) ON DELETE CASCADE,
            app_id INTEGER NOT NULL REFERENCES apps (id) ON DELETE CASCADE,
            total_runs INTEGER NOT NULL DEFAULT 0,
            passed_runs INTEGER NOT NULL DEFAULT 0,
            failed_runs INTEGER NOT NULL DEFAULT 0,
            success_rate NUMERIC(5, 4) NOT NULL DEFAULT 0,
            last_run_status VARCHAR(20) NOT NULL,
            last_failed_run_at TIMESTAMPTZ,
            last_run_at TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            UNIQUE (report_summary_id, app_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_e2e_report_details_app_id
        ON e2e_report_details (app_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS e2e_report_details")
    op.execute("DROP TABLE IF EXISTS e2e_report_summaries")
