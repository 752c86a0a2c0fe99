from datetime import datetime

from sqlalchemy import Column, DateTime, String

from piecework.database import Base


class Contractor(Base):
    __tablename__ = "contractors"

    contractor_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
