"""
Store model - one connected commerce storefront
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class Store(Base):
    """A storefront whose orders are ingested and produced here"""
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    shop_domain = Column(String(255), unique=True, nullable=False, index=True)

    # Commerce platform credentials
    access_token = Column(String(255), nullable=True)
    inventory_location_id = Column(String(255), nullable=True)  # gid://shopify/Location/...

    # Shipping provider
    bosta_api_key = Column(String(255), nullable=True)
    shipping_enabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    rules = relationship("ClassificationRule", back_populates="store")
    orders = relationship("Order", back_populates="store")

    def __repr__(self):
        return f"<Store {self.shop_domain}>"
