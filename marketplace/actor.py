"""
Acting-user context passed explicitly to every service operation.

The request middleware builds one from the logged-in user; tests build
them directly.
"""
from marketplace.models import UserRole, ADMIN_ROLES


class Actor:
    """Identity, role and tenant scope of whoever performs an operation."""

    def __init__(self, user_id, role, tenant_id=None, tenant_type=None, permissions=None):
        self.user_id = user_id
        self.role = role
        self.tenant_id = tenant_id
        self.tenant_type = tenant_type
        self.permissions = dict(permissions or {})

    def __repr__(self):
        return f"<Actor(user_id={self.user_id}, role='{self.role}', tenant_id={self.tenant_id})>"

    @classmethod
    def from_user(cls, user):
        tenant = user.tenant
        return cls(
            user_id=user.id,
            role=user.role,
            tenant_id=user.tenant_id,
            tenant_type=tenant.type if tenant is not None else None,
            permissions=user.permissions,
        )

    @property
    def is_super_admin(self):
        return self.role == UserRole.SUPER_ADMIN.value

    @property
    def is_tenant_admin(self):
        return self.role in ADMIN_ROLES

    def belongs_to(self, tenant_id):
        return self.tenant_id is not None and self.tenant_id == tenant_id

    def can(self, capability):
        """Capability flag check (view/create/admin); super-admins can do anything."""
        if self.is_super_admin:
            return True
        return bool(self.permissions.get(capability))
