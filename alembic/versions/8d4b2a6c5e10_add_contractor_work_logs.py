"""add contractor work logs, completion events and idempotent completion batches

Revision ID: 8d4b2a6c5e10
Revises: 3c1f0e7a9b21
Create Date: 2026-09-21 16:47:03.918552

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "8d4b2a6c5e10"
down_revision: Union[str, Sequence[str], None] = "3c1f0e7a9b21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "contractor_work_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("contractor_id", sa.String(), nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("contractor_id", "job_id", name="uq_contractor_work_logs_contractor_job"),
    )
    op.create_index("ix_contractor_work_logs_id", "contractor_work_logs", ["id"], unique=False)
    op.create_index("ix_contractor_work_logs_contractor_id", "contractor_work_logs", ["contractor_id"], unique=False)
    op.create_index("ix_contractor_work_logs_job_id", "contractor_work_logs", ["job_id"], unique=False)

    op.create_table(
        "completion_batches",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("contractor_id", sa.String(), nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("idempotency_key", sa.String(), nullable=False),
        sa.Column("result", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "contractor_id",
            "job_id",
            "idempotency_key",
            name="uq_completion_batches_idempotency",
        ),
    )
    op.create_index("ix_completion_batches_contractor_id", "completion_batches", ["contractor_id"], unique=False)
    op.create_index("ix_completion_batches_job_id", "completion_batches", ["job_id"], unique=False)

    op.create_table(
        "completion_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("work_log_id", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.String(), nullable=True),
        sa.Column("operation_id", sa.String(), nullable=False),
        sa.Column("quantity_completed", sa.Numeric(18, 4), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["work_log_id"], ["contractor_work_logs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["batch_id"], ["completion_batches.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("quantity_completed > 0", name="ck_completion_events_quantity_positive"),
    )
    op.create_index("ix_completion_events_id", "completion_events", ["id"], unique=False)
    op.create_index("ix_completion_events_work_log_id", "completion_events", ["work_log_id"], unique=False)
    op.create_index("ix_completion_events_batch_id", "completion_events", ["batch_id"], unique=False)
    op.create_index("ix_completion_events_operation_id", "completion_events", ["operation_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_completion_events_operation_id", table_name="completion_events")
    op.drop_index("ix_completion_events_batch_id", table_name="completion_events")
    op.drop_index("ix_completion_events_work_log_id", table_name="completion_events")
    op.drop_index("ix_completion_events_id", table_name="completion_events")
    op.drop_table("completion_events")

    op.drop_index("ix_completion_batches_job_id", table_name="completion_batches")
    op.drop_index("ix_completion_batches_contractor_id", table_name="completion_batches")
    op.drop_table("completion_batches")

    op.drop_index("ix_contractor_work_logs_job_id", table_name="contractor_work_logs")
    op.drop_index("ix_contractor_work_logs_contractor_id", table_name="contractor_work_logs")
    op.drop_index("ix_contractor_work_logs_id", table_name="contractor_work_logs")
    op.drop_table("contractor_work_logs")
