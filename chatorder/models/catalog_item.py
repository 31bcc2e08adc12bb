from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String, func

from chatorder.core.database import Base


class CatalogItem(Base):
    __tablename__ = "catalog_items"
    __table_args__ = (Index("ix_catalog_items_tenant_canonical", "tenant_id", "canonical_name"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    canonical_name = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    variant = Column(String, nullable=True)
    category = Column(String, nullable=True)
    price = Column(Float, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
