"""
Registration and login rules.

New tenants and their first admin start out pending; staff and customers
register as pending users. Nobody logs in until approved, and users of a
tenant can only log in while the tenant is approved and switched on.
"""
import logging
import re
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.database import conflict_from_integrity_error
from marketplace.exceptions import (
    MarketplaceError, ValidationError, ConflictError, NotFoundError,
    ForbiddenError, AuthenticationError
)
from marketplace.models import (
    Tenant, TenantType, TenantStatus, User, UserRole, UserStatus,
    admin_role_for, staff_role_for, permissions_for_level, is_role_consistent
)
from marketplace.utils.time import utcnow

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
MIN_PASSWORD_LENGTH = 8


def normalize_email(email) -> str:
    return (email or '').strip().lower()


def validate_credentials(email, password) -> str:
    """Check email format and password length; returns the normalized email."""
    email = normalize_email(email)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return email


def ensure_email_free(session: Session, email: str) -> None:
    if session.query(User.id).filter(User.email == email).first():
        raise ConflictError("A user with this email already exists")


def register_tenant(session: Session, name, tenant_type, email, password, admin_email=None,
                    first_name=None, last_name=None, phone=None, address=None) -> Tuple[Tenant, User]:
    """
    Register an organization together with its first admin user.

    Both start pending; a super-admin approval activates them together.
    """
    if not name or not name.strip():
        raise ValidationError("Organization name is required")
    try:
        tenant_type = TenantType(tenant_type).value
    except ValueError:
        raise ValidationError("Tenant type must be supplier, company or service_provider")

    tenant_email = validate_credentials(email, password)
    user_email = validate_credentials(admin_email, password) if admin_email else tenant_email

    if session.query(Tenant.id).filter(Tenant.email == tenant_email).first():
        raise ConflictError("An organization with this email already exists")
    ensure_email_free(session, user_email)

    try:
        tenant = Tenant(
            name=name.strip(),
            type=tenant_type,
            email=tenant_email,
            phone=phone,
            address=address,
            status=TenantStatus.PENDING.value,
            is_active=False,
        )
        session.add(tenant)
        session.flush()

        user = User(
            email=user_email,
            first_name=first_name,
            last_name=last_name,
            role=admin_role_for(tenant_type),
            tenant_id=tenant.id,
            status=UserStatus.PENDING.value,
            is_active=False,
            permissions=permissions_for_level('admin'),
        )
        user.set_password(password)
        session.add(user)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise conflict_from_integrity_error(e, "Organization or user email already registered")
    except Exception:
        session.rollback()
        raise

    logger.info(f"Tenant registered: {tenant.id} ({tenant.type}) with admin {user.email}")
    return tenant, user


def register_user(session: Session, tenant_id, email, password, role=None,
                  first_name=None, last_name=None) -> User:
    """Self-registration of a staff member under an approved tenant."""
    tenant = session.get(Tenant, tenant_id) if tenant_id else None
    if tenant is None:
        raise NotFoundError("Organization not found")
    if not tenant.is_operational:
        raise ForbiddenError("This organization is not accepting new users")

    role = role or staff_role_for(tenant.type)
    if role != staff_role_for(tenant.type) or not is_role_consistent(role, tenant.type):
        raise ValidationError(f"Role '{role}' is not valid for a {tenant.type} organization")

    email = validate_credentials(email, password)
    ensure_email_free(session, email)
    return _create_pending_user(session, email, password, role, tenant.id, first_name, last_name)


def register_customer(session: Session, email, password, first_name=None, last_name=None) -> User:
    """Top-level customer account (no tenant); approved by a super-admin."""
    email = validate_credentials(email, password)
    ensure_email_free(session, email)
    return _create_pending_user(session, email, password, UserRole.CUSTOMER.value, None, first_name, last_name)


def _create_pending_user(session: Session, email, password, role, tenant_id, first_name, last_name) -> User:
    try:
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            tenant_id=tenant_id,
            status=UserStatus.PENDING.value,
            is_active=False,
            permissions=permissions_for_level('view'),
        )
        user.set_password(password)
        session.add(user)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise conflict_from_integrity_error(e, "A user with this email already exists")
    except Exception:
        session.rollback()
        raise

    logger.info(f"User registered: {user.email} ({user.role}), pending approval")
    return user


def check_login_allowed(user: User) -> None:
    """
    Raise ForbiddenError unless the user may hold a session right now.

    Tenant state is checked first: a rejected or deactivated organization
    blocks all of its users regardless of their own status.
    """
    if user.tenant_id is not None:
        tenant = user.tenant
        if tenant is None or tenant.status == TenantStatus.REJECTED.value:
            raise ForbiddenError("Your organization's registration was rejected")
        if tenant.status == TenantStatus.PENDING.value:
            raise ForbiddenError("Your organization is pending approval")
        if not tenant.is_active:
            raise ForbiddenError("Your organization has been deactivated")

    if user.status == UserStatus.REJECTED.value:
        raise ForbiddenError("Your account registration was rejected")
    if user.status == UserStatus.PENDING.value:
        raise ForbiddenError("Your account is pending approval")
    if not user.is_active:
        raise ForbiddenError("Your account has been deactivated")


def authenticate(session: Session, email, password) -> User:
    """Verify credentials and approval state; records the login time."""
    user = session.query(User).filter(User.email == normalize_email(email)).first()
    if user is None or not user.check_password(password or ''):
        logger.info(f"Failed login for {normalize_email(email)}")
        raise AuthenticationError("Invalid email or password")

    check_login_allowed(user)

    try:
        user.last_login_at = utcnow()
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"User {user.id} logged in")
    return user


def load_session_user(session: Session, user_id) -> Optional[User]:
    """User for an existing login session, or None once access was revoked."""
    user = session.get(User, user_id)
    if user is None:
        return None
    try:
        check_login_allowed(user)
    except MarketplaceError:
        return None
    return user
