"""PrivatePrice model - negotiated price visible to a single company."""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Text, Uuid, Index, CheckConstraint
from sqlalchemy.orm import relationship
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id, fmt_money, fmt_dt
from marketplace.utils.time import utcnow


class PrivatePrice(Base):
    """
    Company-specific price for a product.
    
    Either an absolute price or a discount percentage on the current
    default price is stored, never both.
    """
    
    __tablename__ = 'private_prices'
    __table_args__ = (
        Index('ix_private_prices_product_company', 'product_id', 'company_id', 'is_active'),
        CheckConstraint(
            '(price IS NULL) <> (discount_percentage IS NULL)',
            name='ck_private_price_price_xor_discount'
        ),
    )
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey('products.id'), nullable=False)
    company_id = Column(Uuid, ForeignKey('tenants.id'), nullable=False)
    price = Column(Numeric(12, 2), nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=True)
    currency = Column(String(3), nullable=False, default='USD')
    effective_from = Column(DateTime, nullable=False, default=utcnow)
    effective_until = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    # Relationships
    product = relationship('Product', back_populates='private_prices')
    company = relationship('Tenant')
    
    def __repr__(self):
        amount = self.price if self.price is not None else f'-{self.discount_percentage}%'
        return f"<PrivatePrice(product_id={self.product_id}, company_id={self.company_id}, {amount})>"
    
    def to_dict(self):
        return {
            'id': fmt_id(self.id),
            'product_id': fmt_id(self.product_id),
            'company_id': fmt_id(self.company_id),
            'price': fmt_money(self.price),
            'discount_percentage': fmt_money(self.discount_percentage),
            'currency': self.currency,
            'effective_from': fmt_dt(self.effective_from),
            'effective_until': fmt_dt(self.effective_until),
            'is_active': self.is_active,
            'notes': self.notes,
            'created_at': fmt_dt(self.created_at),
        }
