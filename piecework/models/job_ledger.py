from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String
from sqlalchemy.orm import relationship

from piecework.database import Base


class JobLedger(Base):
    __tablename__ = "job_ledgers"

    __table_args__ = (
        CheckConstraint("total_units >= 0", name="ck_job_ledgers_total_units_nonnegative"),
    )

    # external job number; natural key
    job_id = Column(String, primary_key=True, index=True)

    total_units = Column(Numeric(18, 4), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    operations = relationship(
        "OperationQuota",
        back_populates="ledger",
        order_by="OperationQuota.position",
        cascade="all, delete-orphan",
    )
