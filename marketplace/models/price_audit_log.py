"""Price audit trail - one row per default or private price write."""
import enum
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Uuid
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id, fmt_money, fmt_dt
from marketplace.utils.time import utcnow


class PriceAction(enum.Enum):
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'


class PriceAuditLog(Base):
    
    __tablename__ = 'price_audit_logs'
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey('products.id'), nullable=False, index=True)
    price_type = Column(String(10), nullable=False)  # default | private
    company_id = Column(Uuid, nullable=True)
    action = Column(String(10), nullable=False)
    old_price = Column(Numeric(12, 2), nullable=True)
    new_price = Column(Numeric(12, 2), nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    changed_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    
    def __repr__(self):
        return f"<PriceAuditLog(product_id={self.product_id}, {self.price_type} {self.action})>"
    
    def to_dict(self):
        return {
            'id': fmt_id(self.id),
            'product_id': fmt_id(self.product_id),
            'price_type': self.price_type,
            'company_id': fmt_id(self.company_id),
            'action': self.action,
            'old_price': fmt_money(self.old_price),
            'new_price': fmt_money(self.new_price),
            'discount_percentage': fmt_money(self.discount_percentage),
            'currency': self.currency,
            'changed_by': fmt_id(self.changed_by),
            'created_at': fmt_dt(self.created_at),
        }
