"""Product model - goods and services owned by a supplier tenant."""
import enum
import uuid
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Numeric, Text, Uuid,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id, fmt_money, fmt_dt
from marketplace.utils.time import utcnow


class ProductType(enum.Enum):
    PRODUCT = 'product'
    SERVICE = 'service'


class RateType(enum.Enum):
    """Billing basis for services."""
    PER_HOUR = 'per_hour'
    PER_PROJECT = 'per_project'
    FIXED = 'fixed'
    NEGOTIABLE = 'negotiable'


class Product(Base):
    """
    Catalog item.
    
    SKU is unique per supplier. A product may carry only a product category,
    a service only a service category, never both.
    """
    
    __tablename__ = 'products'
    __table_args__ = (
        UniqueConstraint('supplier_id', 'sku', name='uq_product_supplier_sku'),
        CheckConstraint(
            'category_id IS NULL OR service_category_id IS NULL',
            name='ck_product_single_category'
        ),
    )
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    supplier_id = Column(Uuid, ForeignKey('tenants.id'), nullable=False, index=True)
    sku = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default=ProductType.PRODUCT.value)
    category_id = Column(Uuid, ForeignKey('categories.id'), nullable=True)
    service_category_id = Column(Uuid, ForeignKey('service_categories.id'), nullable=True)
    unit = Column(String(50), nullable=False)
    
    # Service-only fields
    rate_per_hour = Column(Numeric(12, 2), nullable=True)
    rate_type = Column(String(20), nullable=True)
    
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    # Relationships
    supplier = relationship('Tenant', back_populates='products')
    category = relationship('Category', back_populates='products')
    service_category = relationship('ServiceCategory', back_populates='products')
    default_prices = relationship('DefaultPrice', back_populates='product')
    private_prices = relationship('PrivatePrice', back_populates='product')
    
    def __repr__(self):
        return f"<Product(id={self.id}, sku='{self.sku}', name='{self.name}')>"
    
    @property
    def is_service(self):
        return self.type == ProductType.SERVICE.value
    
    def to_dict(self):
        return {
            'id': fmt_id(self.id),
            'supplier_id': fmt_id(self.supplier_id),
            'sku': self.sku,
            'name': self.name,
            'description': self.description,
            'type': self.type,
            'category_id': fmt_id(self.category_id),
            'service_category_id': fmt_id(self.service_category_id),
            'unit': self.unit,
            'rate_per_hour': fmt_money(self.rate_per_hour),
            'rate_type': self.rate_type,
            'is_active': self.is_active,
            'created_at': fmt_dt(self.created_at),
            'updated_at': fmt_dt(self.updated_at),
        }
