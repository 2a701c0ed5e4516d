"""User model - platform account, optionally scoped to one tenant."""
import enum
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Text, Uuid
from sqlalchemy.orm import relationship
from werkzeug.security import generate_password_hash, check_password_hash
from marketplace.database import Base
from marketplace.models.tenant import TenantType
from marketplace.utils.formatters import fmt_id, fmt_dt
from marketplace.utils.time import utcnow


class UserRole(enum.Enum):
    """Platform roles. Tenant-bound roles carry the tenant type as prefix."""
    SUPER_ADMIN = 'super_admin'
    SUPPLIER_ADMIN = 'supplier_admin'
    SUPPLIER_STAFF = 'supplier_staff'
    COMPANY_ADMIN = 'company_admin'
    COMPANY_STAFF = 'company_staff'
    SERVICE_PROVIDER_ADMIN = 'service_provider_admin'
    SERVICE_PROVIDER_STAFF = 'service_provider_staff'
    CUSTOMER = 'customer'


class UserStatus(enum.Enum):
    PENDING = 'pending'
    ACTIVE = 'active'
    REJECTED = 'rejected'


class PermissionLevel(enum.Enum):
    """Tri-level capability set: ADMIN includes CREATE includes VIEW."""
    VIEW = 'view'
    CREATE = 'create'
    ADMIN = 'admin'


# Role -> required tenant type (None means the role has no tenant)
ROLE_TENANT_TYPE = {
    UserRole.SUPER_ADMIN.value: None,
    UserRole.CUSTOMER.value: None,
    UserRole.SUPPLIER_ADMIN.value: TenantType.SUPPLIER.value,
    UserRole.SUPPLIER_STAFF.value: TenantType.SUPPLIER.value,
    UserRole.COMPANY_ADMIN.value: TenantType.COMPANY.value,
    UserRole.COMPANY_STAFF.value: TenantType.COMPANY.value,
    UserRole.SERVICE_PROVIDER_ADMIN.value: TenantType.SERVICE_PROVIDER.value,
    UserRole.SERVICE_PROVIDER_STAFF.value: TenantType.SERVICE_PROVIDER.value,
}

ADMIN_ROLES = (
    UserRole.SUPPLIER_ADMIN.value,
    UserRole.COMPANY_ADMIN.value,
    UserRole.SERVICE_PROVIDER_ADMIN.value,
)


def admin_role_for(tenant_type):
    return f'{tenant_type}_admin'


def staff_role_for(tenant_type):
    return f'{tenant_type}_staff'


def permissions_for_level(level):
    """Expand a permission level into the capability flag map."""
    level = PermissionLevel(level)
    return {
        'view': True,
        'create': level in (PermissionLevel.CREATE, PermissionLevel.ADMIN),
        'admin': level == PermissionLevel.ADMIN,
    }


def is_role_consistent(role, tenant_type):
    """Check that a role matches the type of the tenant it belongs to."""
    if role not in ROLE_TENANT_TYPE:
        return False
    return ROLE_TENANT_TYPE[role] == tenant_type


class User(Base):
    """User model - tenant staff, tenant admins, customers and super-admins."""
    
    __tablename__ = 'users'
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(String(32), nullable=False)
    tenant_id = Column(Uuid, ForeignKey('tenants.id'), nullable=True)
    status = Column(String(20), nullable=False, default=UserStatus.PENDING.value)
    is_active = Column(Boolean, nullable=False, default=False)
    permissions = Column(JSON, nullable=False, default=lambda: permissions_for_level('view'))
    
    approved_by = Column(Uuid, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_by = Column(Uuid, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    # Relationships
    tenant = relationship('Tenant', back_populates='users')
    
    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
    
    def set_password(self, password):
        """Hash and set password."""
        self.password_hash = generate_password_hash(password, method='scrypt')
    
    def check_password(self, password):
        """Verify password against hash."""
        return check_password_hash(self.password_hash, password)
    
    @property
    def full_name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part) or self.email
    
    def permission_level(self):
        """Highest permission level granted by the stored flags."""
        flags = self.permissions or {}
        if flags.get('admin'):
            return PermissionLevel.ADMIN.value
        if flags.get('create'):
            return PermissionLevel.CREATE.value
        return PermissionLevel.VIEW.value
    
    def to_dict(self):
        """Public representation; never includes the password hash."""
        return {
            'id': fmt_id(self.id),
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'role': self.role,
            'tenant_id': fmt_id(self.tenant_id),
            'status': self.status,
            'is_active': self.is_active,
            'permissions': dict(self.permissions or {}),
            'approved_at': fmt_dt(self.approved_at),
            'last_login_at': fmt_dt(self.last_login_at),
            'created_at': fmt_dt(self.created_at),
        }
