from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from chatorder.core.database import Base


class AttemptCounter(Base):
    __tablename__ = "attempt_counters"
    __table_args__ = (UniqueConstraint("tenant_id", "customer_phone", name="uq_attempt_counters_customer"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    customer_phone = Column(String(30), index=True, nullable=False)
    failed_attempts = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=True)
