from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from piecework.database import Base


class ContractorWorkLog(Base):
    __tablename__ = "contractor_work_logs"

    __table_args__ = (
        UniqueConstraint("contractor_id", "job_id", name="uq_contractor_work_logs_contractor_job"),
    )

    id = Column(Integer, primary_key=True, index=True)

    contractor_id = Column(String, nullable=False, index=True)
    # joined to job_ledgers.job_id at read time only
    job_id = Column(String, nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    events = relationship(
        "CompletionEvent",
        back_populates="work_log",
        order_by="CompletionEvent.id",
        lazy="selectin",
    )
