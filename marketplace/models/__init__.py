"""Models package - exports all SQLAlchemy models."""
# Directory
from marketplace.models.tenant import Tenant, TenantType, TenantStatus, SELLER_TYPES
from marketplace.models.user import (
    User, UserRole, UserStatus, PermissionLevel, ROLE_TENANT_TYPE, ADMIN_ROLES,
    admin_role_for, staff_role_for, permissions_for_level, is_role_consistent
)

# Catalog
from marketplace.models.category import Category
from marketplace.models.service_category import ServiceCategory
from marketplace.models.product import Product, ProductType, RateType

# Pricing
from marketplace.models.default_price import DefaultPrice
from marketplace.models.private_price import PrivatePrice
from marketplace.models.price_audit_log import PriceAuditLog, PriceAction

# Quotes
from marketplace.models.quote_request import (
    QuoteRequest, QuoteStatus, QuoteParty, TERMINAL_STATUSES, effective_status
)
from marketplace.models.quote_offer import QuoteOffer

# Administration
from marketplace.models.admin_audit import AdminAuditLog, AuditAction

__all__ = [
    # Directory
    'Tenant', 'TenantType', 'TenantStatus', 'SELLER_TYPES',
    'User', 'UserRole', 'UserStatus', 'PermissionLevel', 'ROLE_TENANT_TYPE', 'ADMIN_ROLES',
    'admin_role_for', 'staff_role_for', 'permissions_for_level', 'is_role_consistent',
    # Catalog
    'Category', 'ServiceCategory', 'Product', 'ProductType', 'RateType',
    # Pricing
    'DefaultPrice', 'PrivatePrice', 'PriceAuditLog', 'PriceAction',
    # Quotes
    'QuoteRequest', 'QuoteStatus', 'QuoteParty', 'TERMINAL_STATUSES', 'effective_status',
    'QuoteOffer',
    # Administration
    'AdminAuditLog', 'AuditAction',
]
