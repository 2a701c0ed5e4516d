"""
Super-admin workflows: tenant approval, activation toggles, top-level user
approval and platform statistics.

Tenant approval is a one-shot status machine (pending -> active | rejected).
is_active is an orthogonal switch available only on approved tenants.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.blueprints.metrics import approval_decisions_total
from marketplace.database import conflict_from_integrity_error
from marketplace.exceptions import (
    NotFoundError, ForbiddenError, InvalidStateTransition
)
from marketplace.models import (
    Tenant, TenantType, TenantStatus, User, UserRole, UserStatus, Product, QuoteRequest,
    AdminAuditLog, AuditAction, ADMIN_ROLES, permissions_for_level
)
from marketplace.services.auth_service import validate_credentials, ensure_email_free
from marketplace.utils.time import utcnow

logger = logging.getLogger(__name__)


def require_super_admin(actor) -> None:
    if actor is None or not actor.is_super_admin:
        raise ForbiddenError("Super-admin access required")


def _get_tenant(session: Session, tenant_id) -> Tenant:
    tenant = session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return tenant


def _get_user(session: Session, user_id) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------

def list_tenants(session: Session, actor, status=None, tenant_type=None) -> List[Tenant]:
    require_super_admin(actor)
    query = session.query(Tenant)
    if status:
        query = query.filter(Tenant.status == status)
    if tenant_type:
        query = query.filter(Tenant.type == tenant_type)
    return query.order_by(Tenant.created_at.desc()).all()


def list_pending_tenants(session: Session, actor) -> List[Tenant]:
    return list_tenants(session, actor, status=TenantStatus.PENDING.value)


def get_tenant(session: Session, actor, tenant_id) -> Tenant:
    require_super_admin(actor)
    return _get_tenant(session, tenant_id)


def _first_admin_user(session: Session, tenant: Tenant) -> Optional[User]:
    return session.query(User).filter(
        User.tenant_id == tenant.id,
        User.role.in_(ADMIN_ROLES)
    ).order_by(User.created_at.asc()).first()


def approve_tenant(session: Session, actor, tenant_id, ip_address=None) -> Tenant:
    """
    Approve a pending tenant and activate its first admin user.

    Everything commits in one transaction together with the audit entry.
    """
    require_super_admin(actor)
    tenant = _get_tenant(session, tenant_id)
    if tenant.status != TenantStatus.PENDING.value:
        raise InvalidStateTransition(
            f"Tenant is already {tenant.status}", current_status=tenant.status, action='approve'
        )

    now = utcnow()
    try:
        tenant.status = TenantStatus.ACTIVE.value
        tenant.is_active = True
        tenant.approved_by = actor.user_id
        tenant.approved_at = now

        admin_user = _first_admin_user(session, tenant)
        if admin_user is not None and admin_user.status == UserStatus.PENDING.value:
            admin_user.status = UserStatus.ACTIVE.value
            admin_user.is_active = True
            admin_user.approved_by = actor.user_id
            admin_user.approved_at = now

        session.add(AdminAuditLog.log_action(
            actor.user_id, AuditAction.APPROVE_TENANT,
            target_tenant_id=tenant.id,
            target_user_id=admin_user.id if admin_user else None,
            ip_address=ip_address,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise

    approval_decisions_total.labels(subject='tenant', decision='approved').inc()
    logger.info(f"Tenant {tenant.id} approved by {actor.user_id}")
    return tenant


def reject_tenant(session: Session, actor, tenant_id, reason=None, ip_address=None) -> Tenant:
    """Reject a pending tenant; its users can never log in afterwards."""
    require_super_admin(actor)
    tenant = _get_tenant(session, tenant_id)
    if tenant.status != TenantStatus.PENDING.value:
        raise InvalidStateTransition(
            f"Tenant is already {tenant.status}", current_status=tenant.status, action='reject'
        )

    try:
        tenant.status = TenantStatus.REJECTED.value
        tenant.is_active = False
        tenant.rejected_by = actor.user_id
        tenant.rejected_at = utcnow()
        tenant.rejection_reason = reason
        session.add(AdminAuditLog.log_action(
            actor.user_id, AuditAction.REJECT_TENANT,
            target_tenant_id=tenant.id,
            details={'reason': reason} if reason else None,
            ip_address=ip_address,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise

    approval_decisions_total.labels(subject='tenant', decision='rejected').inc()
    logger.info(f"Tenant {tenant.id} rejected by {actor.user_id}: {reason or 'no reason given'}")
    return tenant


def toggle_tenant_status(session: Session, actor, tenant_id, is_active=None, ip_address=None) -> Tenant:
    """
    Switch an approved tenant on or off.

    ``is_active=None`` flips the current value. Pending and rejected tenants
    cannot be toggled.
    """
    require_super_admin(actor)
    tenant = _get_tenant(session, tenant_id)
    if tenant.status != TenantStatus.ACTIVE.value:
        raise InvalidStateTransition(
            f"Only approved tenants can be toggled (tenant is {tenant.status})",
            current_status=tenant.status, action='toggle'
        )

    new_value = (not tenant.is_active) if is_active is None else bool(is_active)
    try:
        tenant.is_active = new_value
        session.add(AdminAuditLog.log_action(
            actor.user_id,
            AuditAction.ACTIVATE_TENANT if new_value else AuditAction.DEACTIVATE_TENANT,
            target_tenant_id=tenant.id,
            ip_address=ip_address,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Tenant {tenant.id} is_active={new_value} (by {actor.user_id})")
    return tenant


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def list_pending_users(session: Session, actor) -> List[User]:
    """Pending top-level users (customers) awaiting super-admin approval."""
    require_super_admin(actor)
    return session.query(User).filter(
        User.tenant_id.is_(None),
        User.status == UserStatus.PENDING.value
    ).order_by(User.created_at.asc()).all()


def decide_user(session: Session, actor, user_id, approve: bool, reason=None, ip_address=None) -> User:
    """Approve or reject a pending user. Shared by super-admins and tenant admins."""
    user = _get_user(session, user_id)
    if user.status != UserStatus.PENDING.value:
        raise InvalidStateTransition(
            f"User is already {user.status}", current_status=user.status,
            action='approve' if approve else 'reject'
        )

    now = utcnow()
    try:
        if approve:
            user.status = UserStatus.ACTIVE.value
            user.is_active = True
            user.approved_by = actor.user_id
            user.approved_at = now
        else:
            user.status = UserStatus.REJECTED.value
            user.is_active = False
            user.rejected_by = actor.user_id
            user.rejected_at = now
            user.rejection_reason = reason
        session.add(AdminAuditLog.log_action(
            actor.user_id,
            AuditAction.APPROVE_USER if approve else AuditAction.REJECT_USER,
            target_tenant_id=user.tenant_id,
            target_user_id=user.id,
            details={'reason': reason} if reason else None,
            ip_address=ip_address,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise

    decision = 'approved' if approve else 'rejected'
    approval_decisions_total.labels(subject='user', decision=decision).inc()
    logger.info(f"User {user.id} {decision} by {actor.user_id}")
    return user


def approve_user(session: Session, actor, user_id, ip_address=None) -> User:
    require_super_admin(actor)
    return decide_user(session, actor, user_id, True, ip_address=ip_address)


def reject_user(session: Session, actor, user_id, reason=None, ip_address=None) -> User:
    require_super_admin(actor)
    return decide_user(session, actor, user_id, False, reason=reason, ip_address=ip_address)


def list_super_admins(session: Session, actor) -> List[User]:
    require_super_admin(actor)
    return session.query(User).filter(
        User.role == UserRole.SUPER_ADMIN.value
    ).order_by(User.created_at.asc()).all()


def create_super_admin(session: Session, email, password, first_name=None, last_name=None,
                       actor=None) -> User:
    """
    Create an active super-admin.

    ``actor`` is None when called from the CLI bootstrap command.
    """
    if actor is not None:
        require_super_admin(actor)
    email = validate_credentials(email, password)
    ensure_email_free(session, email)

    try:
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=UserRole.SUPER_ADMIN.value,
            tenant_id=None,
            status=UserStatus.ACTIVE.value,
            is_active=True,
            permissions=permissions_for_level('admin'),
            approved_at=utcnow(),
            approved_by=actor.user_id if actor else None,
        )
        user.set_password(password)
        session.add(user)
        session.flush()
        session.add(AdminAuditLog.log_action(
            actor.user_id if actor else user.id,
            AuditAction.CREATE_SUPER_ADMIN,
            target_user_id=user.id,
        ))
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise conflict_from_integrity_error(e, "A user with this email already exists")
    except Exception:
        session.rollback()
        raise

    logger.info(f"Super-admin created: {user.email}")
    return user


def list_audit_logs(session: Session, actor, tenant_id=None, limit: int = 100) -> List[AdminAuditLog]:
    require_super_admin(actor)
    query = session.query(AdminAuditLog)
    if tenant_id is not None:
        query = query.filter(AdminAuditLog.target_tenant_id == tenant_id)
    return query.order_by(AdminAuditLog.created_at.desc()).limit(limit).all()


def get_platform_statistics(session: Session, actor) -> Dict[str, Any]:
    """Counts of tenants by status and type, users, products and quotes."""
    require_super_admin(actor)

    tenants_by_status = {s.value: 0 for s in TenantStatus}
    for status, count in session.query(Tenant.status, func.count(Tenant.id)).group_by(Tenant.status):
        tenants_by_status[status] = count

    tenants_by_type = {t.value: 0 for t in TenantType}
    for tenant_type, count in session.query(Tenant.type, func.count(Tenant.id)).group_by(Tenant.type):
        tenants_by_type[tenant_type] = count

    return {
        'tenants': {
            'total': sum(tenants_by_status.values()),
            'by_status': tenants_by_status,
            'by_type': tenants_by_type,
        },
        'users': {
            'total': session.query(func.count(User.id)).scalar(),
            'pending': session.query(func.count(User.id)).filter(
                User.status == UserStatus.PENDING.value).scalar(),
        },
        'products': session.query(func.count(Product.id)).filter(Product.is_active.is_(True)).scalar(),
        'quote_requests': session.query(func.count(QuoteRequest.id)).scalar(),
    }
