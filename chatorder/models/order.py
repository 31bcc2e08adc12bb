import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB

from chatorder.core.database import Base


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_tenant_customer_status", "tenant_id", "customer_phone", "status"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    customer_phone = Column(String(30), nullable=False)

    # Snapshot taken at confirmation
    items = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=False)
    raw_text = Column(Text, nullable=True)
    total_amount = Column(Float, nullable=False, default=0)

    # awaiting_customer_action / awaiting_store_action / awaiting_payment_proof / accepted /
    # preparing / ready / out_for_delivery / delivered / cancelled
    status = Column(String(40), nullable=False, default="awaiting_customer_action")

    # Fulfillment
    delivery_type = Column(String(20), nullable=True)  # pickup / delivery
    delivery_address_text = Column(Text, nullable=True)
    delivery_lat = Column(Float, nullable=True)
    delivery_lng = Column(Float, nullable=True)
    delivery_distance_km = Column(Float, nullable=True)
    delivery_fee = Column(Float, nullable=True)
    delivery_status = Column(String(30), nullable=True)  # confirmed / pending_address

    # Payment
    payment_mode = Column(String(20), nullable=True)  # cash / card / upi / online
    payment_status = Column(String(20), nullable=False, default="unpaid")  # unpaid / pending / paid
    payment_provider = Column(String(30), nullable=True)
    payment_link_id = Column(String, nullable=True)
    payment_link_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
