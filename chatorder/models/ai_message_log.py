from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, func

from chatorder.core.database import Base


class AIMessageLog(Base):
    """Audit row for one classifier call, successful or not."""

    __tablename__ = "ai_message_logs"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    customer_phone = Column(String, index=True, nullable=True)
    provider = Column(String, nullable=False)
    message_text = Column(Text, nullable=True)
    prompt = Column(Text, nullable=True)
    raw_response = Column(Text, nullable=True)
    parsed_json = Column(Text, nullable=True)
    intent = Column(String, nullable=True)
    confidence = Column(Float, nullable=True)
    accepted = Column(Boolean, nullable=False, default=False)
    latency_ms = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
