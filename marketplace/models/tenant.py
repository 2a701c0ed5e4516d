"""Tenant model - supplier, company or service-provider organization."""
import enum
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Text, Uuid
from sqlalchemy.orm import relationship
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id, fmt_dt
from marketplace.utils.time import utcnow


class TenantType(enum.Enum):
    """Kind of organization a tenant represents."""
    SUPPLIER = 'supplier'
    COMPANY = 'company'
    SERVICE_PROVIDER = 'service_provider'


class TenantStatus(enum.Enum):
    """Approval status. Only super-admins move a tenant out of PENDING."""
    PENDING = 'pending'
    ACTIVE = 'active'
    REJECTED = 'rejected'


# Tenant types that own catalog items
SELLER_TYPES = (TenantType.SUPPLIER.value, TenantType.SERVICE_PROVIDER.value)


class Tenant(Base):
    """Tenant model - each organization on the marketplace."""
    
    __tablename__ = 'tenants'
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    type = Column(String(32), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=TenantStatus.PENDING.value)
    is_active = Column(Boolean, nullable=False, default=False)
    
    # Approval metadata (user ids of the acting super-admin)
    approved_by = Column(Uuid, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_by = Column(Uuid, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    # Relationships
    users = relationship('User', back_populates='tenant')
    products = relationship('Product', back_populates='supplier')
    
    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}', type='{self.type}', status='{self.status}')>"
    
    @property
    def is_operational(self):
        """Approved and not switched off; the only state whose users may log in."""
        return self.status == TenantStatus.ACTIVE.value and bool(self.is_active)
    
    @property
    def is_seller(self):
        return self.type in SELLER_TYPES
    
    def to_dict(self):
        return {
            'id': fmt_id(self.id),
            'name': self.name,
            'type': self.type,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'status': self.status,
            'is_active': self.is_active,
            'approved_by': fmt_id(self.approved_by),
            'approved_at': fmt_dt(self.approved_at),
            'rejected_by': fmt_id(self.rejected_by),
            'rejected_at': fmt_dt(self.rejected_at),
            'rejection_reason': self.rejection_reason,
            'created_at': fmt_dt(self.created_at),
        }
