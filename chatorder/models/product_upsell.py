from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from chatorder.core.database import Base


class ProductUpsell(Base):
    __tablename__ = "product_upsells"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("catalog_items.id"), index=True, nullable=False)
    upsell_product_id = Column(Integer, ForeignKey("catalog_items.id"), nullable=False)
    header = Column(String, nullable=True)
    message = Column(Text, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
