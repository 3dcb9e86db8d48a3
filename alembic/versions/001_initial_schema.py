"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    if "verifications" in inspector.get_table_names():
        return

    op.create_table(
        "verifications",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("original_text", sa.Text, nullable=False),
        sa.Column("language", sa.String(8), nullable=False, server_default="es"),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("share_token", sa.String(36), unique=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('draft', 'processing_questions', 'sources_ready', "
            "'generating_summary', 'completed', 'error')",
            name="chk_verification_status",
        ),
    )
    op.create_index("idx_verification_user_id", "verifications", ["user_id"])
    op.create_index("idx_verification_status", "verifications", ["status"])
    op.create_index("idx_verification_user_status", "verifications", ["user_id", "status"])

    op.create_table(
        "critical_questions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("verification_id", sa.Uuid, sa.ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("question_text", sa.Text, nullable=False),
        sa.Column("original_question", sa.Text, nullable=False),
        sa.Column("is_edited", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("order_index", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("verification_id", "order_index", name="uk_critical_questions_verification_order"),
        sa.CheckConstraint("order_index >= 0", name="chk_critical_questions_order_index"),
    )
    op.create_index("idx_critical_questions_verification_id", "critical_questions", ["verification_id"])

    op.create_table(
        "sources",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("verification_id", sa.Uuid, sa.ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("title", sa.String(500)),
        sa.Column("summary", sa.Text),
        sa.Column("domain", sa.String(255)),
        sa.Column("favicon", sa.String(2048)),
        sa.Column("is_selected", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("scraping_date", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_source_verification_id", "sources", ["verification_id"])
    op.create_index("idx_source_is_selected", "sources", ["verification_id", "is_selected"])

    op.create_table(
        "final_results",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "verification_id",
            sa.Uuid,
            sa.ForeignKey("verifications.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("final_text", sa.Text, nullable=False),
        sa.Column("labels_json", JSON_TYPE),
        sa.Column("citations_json", JSON_TYPE),
        sa.Column("answers_json", JSON_TYPE),
        sa.Column("metadata", JSON_TYPE),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "process_logs",
        sa.Column("log_pk", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("log_id", sa.Uuid, nullable=False, unique=True),
        sa.Column("verification_id", sa.Uuid, sa.ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("step", sa.String(100), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("error_message", sa.Text),
        sa.Column("api_response", JSON_TYPE),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('started', 'completed', 'error')", name="chk_process_logs_status"),
        sa.CheckConstraint(
            "(status = 'error' AND error_message IS NOT NULL) OR (status != 'error' AND error_message IS NULL)",
            name="chk_process_logs_error_message",
        ),
    )
    op.create_index("idx_process_logs_verification_id", "process_logs", ["verification_id"])
    op.create_index("idx_process_logs_step_status", "process_logs", ["verification_id", "step", "status"])
    op.create_index("idx_process_logs_created_at", "process_logs", ["created_at"])

    # Created last; startup checks for it to decide whether to migrate
    op.create_table(
        "jobs",
        sa.Column("job_id", sa.Uuid, primary_key=True),
        sa.Column("verification_id", sa.Uuid, sa.ForeignKey("verifications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("stage", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("payload", JSON_TYPE),
        sa.Column("retries", sa.Integer, default=0),
        sa.Column("last_error", sa.Text),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index("idx_jobs_status", "jobs", ["status"])
    op.create_index("idx_jobs_verification_id", "jobs", ["verification_id"])


def downgrade() -> None:
    op.drop_table("jobs")
    op.drop_table("process_logs")
    op.drop_table("final_results")
    op.drop_table("sources")
    op.drop_table("critical_questions")
    op.drop_table("verifications")
