from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from piecework.database import Base


class CompletionBatch(Base):
    """One row per idempotency-keyed recordCompletions call."""

    __tablename__ = "completion_batches"

    __table_args__ = (
        UniqueConstraint(
            "contractor_id",
            "job_id",
            "idempotency_key",
            name="uq_completion_batches_idempotency",
        ),
    )

    id = Column(String, primary_key=True)

    contractor_id = Column(String, nullable=False, index=True)
    job_id = Column(String, nullable=False, index=True)
    idempotency_key = Column(String, nullable=False)

    # applied updates + rejections, replayed verbatim on retry
    result = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
