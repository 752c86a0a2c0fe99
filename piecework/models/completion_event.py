from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from piecework.database import Base


class CompletionEvent(Base):
    """Append-only. Rows are inserted, never updated or deleted."""

    __tablename__ = "completion_events"

    __table_args__ = (
        CheckConstraint("quantity_completed > 0", name="ck_completion_events_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)

    work_log_id = Column(
        Integer,
        ForeignKey("contractor_work_logs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    batch_id = Column(
        String,
        ForeignKey("completion_batches.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    operation_id = Column(String, nullable=False, index=True)
    quantity_completed = Column(Numeric(18, 4), nullable=False)
    completed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    work_log = relationship("ContractorWorkLog", back_populates="events")
