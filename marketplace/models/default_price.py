"""DefaultPrice model - a supplier's public price history for a product."""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Uuid, Index
from sqlalchemy.orm import relationship
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id, fmt_money, fmt_dt
from marketplace.utils.time import utcnow


class DefaultPrice(Base):
    """
    One row per price change. The current price is the active row whose
    effective window contains "now" with the latest effective_from.
    """
    
    __tablename__ = 'default_prices'
    __table_args__ = (
        Index('ix_default_prices_product_active', 'product_id', 'is_active'),
    )
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey('products.id'), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default='USD')
    effective_from = Column(DateTime, nullable=False, default=utcnow)
    effective_until = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    
    # Relationships
    product = relationship('Product', back_populates='default_prices')
    
    def __repr__(self):
        return f"<DefaultPrice(product_id={self.product_id}, price={self.price} {self.currency})>"
    
    def to_dict(self):
        return {
            'id': fmt_id(self.id),
            'product_id': fmt_id(self.product_id),
            'price': fmt_money(self.price),
            'currency': self.currency,
            'effective_from': fmt_dt(self.effective_from),
            'effective_until': fmt_dt(self.effective_until),
            'is_active': self.is_active,
            'created_at': fmt_dt(self.created_at),
        }
