from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint

from chatorder.core.database import Base


class ConversationSession(Base):
    __tablename__ = "conversation_sessions"
    __table_args__ = (UniqueConstraint("tenant_id", "customer_phone", name="uq_conversation_sessions_customer"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    customer_phone = Column(String(30), index=True, nullable=False)

    state = Column(String(40), nullable=False, default="idle")
    updated_at = Column(DateTime(timezone=True), nullable=True)

    # Human operator took over the chat
    manual_mode = Column(Boolean, nullable=False, default=False)
    manual_mode_until = Column(DateTime(timezone=True), nullable=True)
