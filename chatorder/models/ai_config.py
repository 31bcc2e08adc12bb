from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, func

from chatorder.core.database import Base


class AIConfig(Base):
    """Per-tenant settings for the LLM intent classifier tier."""

    __tablename__ = "ai_configs"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False, unique=True)
    enabled = Column(Boolean, nullable=False, default=False)
    provider = Column(String, nullable=False, default="mock")
    model = Column(String, nullable=True)
    temperature = Column(Float, nullable=True)
    # tenants may tighten the acceptance bar, never loosen it below the router floor
    min_confidence = Column(Float, nullable=False, default=0.65)
    lane_hints = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
