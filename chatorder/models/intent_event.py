from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text

from chatorder.core.database import Base


class IntentEvent(Base):
    __tablename__ = "intent_events"
    __table_args__ = (Index("ix_intent_events_tenant_customer", "tenant_id", "customer_phone"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, nullable=False)
    customer_phone = Column(String(30), nullable=False)
    raw_text = Column(Text, nullable=True)
    normalized_text = Column(Text, nullable=True)
    decided_intent = Column(String(40), nullable=False)
    confidence = Column(Float, nullable=False, default=0)
    source = Column(String(20), nullable=False)  # override / rules / ai / fallback
    state = Column(String(40), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
