# backend/models/product.py
from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Model Product
# A purchasable item listed by exactly one store.
# `stock` is the authoritative count of units that can still be sold;
# the CHECK constraint keeps it from ever going negative.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)

    price = Column(Numeric(10, 2), CheckConstraint("price > 0", name="ck_products_price_positive"), nullable=False)
    stock = Column(Integer, CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"), nullable=False, default=0)

    image_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    store = relationship("Store", back_populates="products")
