from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from piecework.database import Base


class OperationQuota(Base):
    __tablename__ = "operation_quotas"

    __table_args__ = (
        UniqueConstraint("job_id", "operation_id", name="uq_operation_quotas_job_operation"),
        CheckConstraint("quantity_per_unit >= 0", name="ck_operation_quotas_quantity_per_unit_nonnegative"),
        CheckConstraint("value_per_unit >= 0", name="ck_operation_quotas_value_per_unit_nonnegative"),
        CheckConstraint("total_quantity >= 0", name="ck_operation_quotas_total_quantity_nonnegative"),
        CheckConstraint(
            "pending_quantity >= 0 AND pending_quantity <= total_quantity",
            name="ck_operation_quotas_pending_within_total",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    job_id = Column(
        String,
        ForeignKey("job_ledgers.job_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    operation_id = Column(String, nullable=False, index=True)
    position = Column(Integer, nullable=False)

    quantity_per_unit = Column(Numeric(18, 4), nullable=False)
    total_quantity = Column(Numeric(18, 4), nullable=False)
    pending_quantity = Column(Numeric(18, 4), nullable=False)
    value_per_unit = Column(Numeric(18, 4), nullable=False)

    last_updated = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    ledger = relationship("JobLedger", back_populates="operations")

    @property
    def unit_rate(self) -> Decimal:
        quantity_per_unit = Decimal(self.quantity_per_unit or 0)
        if quantity_per_unit <= 0:
            return Decimal(0)
        return Decimal(self.value_per_unit or 0) / quantity_per_unit
