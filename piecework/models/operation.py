from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String

from piecework.database import Base

RATE_TYPES = ("1:1", "1*x", "1/x")


class Operation(Base):
    """Operation catalog entry. Maintained outside this service; read-only here."""

    __tablename__ = "operations"

    __table_args__ = (
        CheckConstraint("rate_per_unit >= 0", name="ck_operations_rate_per_unit_nonnegative"),
        CheckConstraint(
            "rate_type IN ('1:1', '1*x', '1/x')",
            name="ck_operations_rate_type",
        ),
    )

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    rate_type = Column(String, nullable=False)
    rate_per_unit = Column(Numeric(18, 4), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
