from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, func

from chatorder.core.database import Base


class IntentOverrideRule(Base):
    __tablename__ = "intent_override_rules"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    pattern = Column(String(200), nullable=False)
    match_type = Column(String(20), nullable=False, default="exact")  # exact / contains / regex
    intent = Column(String(40), nullable=False)
    confidence = Column(Float, nullable=False, default=0.75)
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(20), nullable=False, default="system")  # system / tenant
    hits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
