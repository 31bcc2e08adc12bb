from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, func

from chatorder.core.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, default="Our Store")
    # restaurant / grocery / pharmacy / salon / generic
    business_type = Column(String(40), nullable=False, default="generic")
    is_active = Column(Boolean, nullable=False, default=True)
    phone = Column(String(30), nullable=True)

    # Store location
    store_address_text = Column(Text, nullable=True)
    store_lat = Column(Float, nullable=True)
    store_lng = Column(Float, nullable=True)
    store_maps_url = Column(String, nullable=True)
    store_timezone = Column(String(64), nullable=True)
    open_time = Column(String(8), nullable=True)  # HH:MM
    close_time = Column(String(8), nullable=True)  # HH:MM, may be earlier than open_time (overnight)

    # Delivery pricing
    delivery_free_km = Column(Float, nullable=True)
    delivery_max_km = Column(Float, nullable=True)
    delivery_fee_type = Column(String(20), nullable=True)  # flat / per_km
    delivery_flat_fee = Column(Float, nullable=True)
    delivery_per_km_fee = Column(Float, nullable=True)

    # FAQ overrides
    faq_delivery_answer = Column(Text, nullable=True)
    faq_opening_hours_answer = Column(Text, nullable=True)
    faq_pricing_answer = Column(Text, nullable=True)
    faq_delivery_area_answer = Column(Text, nullable=True)

    # Payments
    payment_qr_url = Column(String, nullable=True)
    payment_instructions = Column(Text, nullable=True)
    razorpay_key_id = Column(String, nullable=True)
    razorpay_key_secret = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
