"""create operation catalog, contractors, job ledgers and operation quotas

Revision ID: 3c1f0e7a9b21
Revises:
Create Date: 2026-09-14 10:12:41.204318

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1f0e7a9b21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "operations",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("rate_type", sa.String(), nullable=False),
        sa.Column("rate_per_unit", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("name", name="uq_operations_name"),
        sa.CheckConstraint("rate_per_unit >= 0", name="ck_operations_rate_per_unit_nonnegative"),
        sa.CheckConstraint("rate_type IN ('1:1', '1*x', '1/x')", name="ck_operations_rate_type"),
    )
    op.create_index("ix_operations_id", "operations", ["id"], unique=False)

    op.create_table(
        "contractors",
        sa.Column("contractor_id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_contractors_contractor_id", "contractors", ["contractor_id"], unique=False)

    op.create_table(
        "job_ledgers",
        sa.Column("job_id", sa.String(), primary_key=True, nullable=False),
        sa.Column("total_units", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("total_units >= 0", name="ck_job_ledgers_total_units_nonnegative"),
    )
    op.create_index("ix_job_ledgers_job_id", "job_ledgers", ["job_id"], unique=False)

    op.create_table(
        "operation_quotas",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("operation_id", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("quantity_per_unit", sa.Numeric(18, 4), nullable=False),
        sa.Column("total_quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("pending_quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("value_per_unit", sa.Numeric(18, 4), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["job_id"], ["job_ledgers.job_id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("job_id", "operation_id", name="uq_operation_quotas_job_operation"),
        sa.CheckConstraint("quantity_per_unit >= 0", name="ck_operation_quotas_quantity_per_unit_nonnegative"),
        sa.CheckConstraint("value_per_unit >= 0", name="ck_operation_quotas_value_per_unit_nonnegative"),
        sa.CheckConstraint("total_quantity >= 0", name="ck_operation_quotas_total_quantity_nonnegative"),
        sa.CheckConstraint(
            "pending_quantity >= 0 AND pending_quantity <= total_quantity",
            name="ck_operation_quotas_pending_within_total",
        ),
    )
    op.create_index("ix_operation_quotas_id", "operation_quotas", ["id"], unique=False)
    op.create_index("ix_operation_quotas_job_id", "operation_quotas", ["job_id"], unique=False)
    op.create_index("ix_operation_quotas_operation_id", "operation_quotas", ["operation_id"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_operation_quotas_operation_id", table_name="operation_quotas")
    op.drop_index("ix_operation_quotas_job_id", table_name="operation_quotas")
    op.drop_index("ix_operation_quotas_id", table_name="operation_quotas")
    op.drop_table("operation_quotas")

    op.drop_index("ix_job_ledgers_job_id", table_name="job_ledgers")
    op.drop_table("job_ledgers")

    op.drop_index("ix_contractors_contractor_id", table_name="contractors")
    op.drop_table("contractors")

    op.drop_index("ix_operations_id", table_name="operations")
    op.drop_table("operations")
