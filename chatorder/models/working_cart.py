import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from chatorder.core.database import Base

JSONType = JSONB().with_variant(sa.JSON(), "sqlite")


class WorkingCart(Base):
    __tablename__ = "working_carts"
    __table_args__ = (UniqueConstraint("tenant_id", "customer_phone", name="uq_working_carts_customer"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    customer_phone = Column(String(30), index=True, nullable=False)

    # selected product, upsell offer or edit target
    item = Column(JSONType, nullable=True)
    # numbered candidates waiting for a reply
    list = Column(JSONType, nullable=True)
    cart = Column(JSONType, nullable=True)
    multi_item_queue = Column(JSONType, nullable=True)
    current_item_index = Column(Integer, nullable=True)

    updated_at = Column(DateTime(timezone=True), nullable=True)
