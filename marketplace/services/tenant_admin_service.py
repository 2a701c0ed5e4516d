"""
Tenant-admin user management, always scoped to the admin's own tenant.

Permission levels are monotonic: admin includes create includes view.
Granting ``admin`` promotes the user to the tenant's *_admin role; lower
levels keep (or demote to) the staff role.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.database import conflict_from_integrity_error
from marketplace.exceptions import (
    ValidationError, NotFoundError, ForbiddenError, InvalidStateTransition
)
from marketplace.models import (
    Tenant, User, UserStatus, PermissionLevel, AdminAuditLog, AuditAction,
    admin_role_for, staff_role_for, permissions_for_level
)
from marketplace.services.admin_service import decide_user
from marketplace.services.auth_service import validate_credentials, ensure_email_free

logger = logging.getLogger(__name__)


def require_tenant_admin(actor) -> None:
    if actor is None or actor.tenant_id is None or not actor.is_tenant_admin or not actor.can('admin'):
        raise ForbiddenError("Organization admin access required")


def _get_scoped_user(session: Session, actor, user_id) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if user.tenant_id != actor.tenant_id:
        raise ForbiddenError("You can only manage users of your own organization")
    return user


def _forbid_self(actor, user: User, what: str) -> None:
    if user.id == actor.user_id:
        raise ForbiddenError(f"You cannot change your own {what}")


def list_pending_users(session: Session, actor) -> List[User]:
    require_tenant_admin(actor)
    return session.query(User).filter(
        User.tenant_id == actor.tenant_id,
        User.status == UserStatus.PENDING.value
    ).order_by(User.created_at.asc()).all()


def list_users(session: Session, actor, page: int = 1, per_page: int = 20, status=None) -> Dict[str, Any]:
    """Paginated users of the actor's tenant."""
    require_tenant_admin(actor)
    page = max(int(page or 1), 1)
    per_page = min(max(int(per_page or 20), 1), 100)

    query = session.query(User).filter(User.tenant_id == actor.tenant_id)
    if status:
        query = query.filter(User.status == status)
    total = query.count()
    items = query.order_by(User.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return {
        'items': items,
        'total': total,
        'page': page,
        'per_page': per_page,
        'pages': (total + per_page - 1) // per_page,
    }


def create_user(session: Session, actor, email, password, first_name=None, last_name=None,
                permission_level='view') -> User:
    """Create a pending staff user in the admin's tenant."""
    require_tenant_admin(actor)
    tenant = session.get(Tenant, actor.tenant_id)
    if tenant is None or not tenant.is_operational:
        raise ForbiddenError("Your organization is not active")
    try:
        level = PermissionLevel(permission_level).value
    except ValueError:
        raise ValidationError("Permission level must be view, create or admin")

    email = validate_credentials(email, password)
    ensure_email_free(session, email)

    try:
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=admin_role_for(tenant.type) if level == 'admin' else staff_role_for(tenant.type),
            tenant_id=tenant.id,
            status=UserStatus.PENDING.value,
            is_active=False,
            permissions=permissions_for_level(level),
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

    logger.info(f"User {user.email} created in tenant {tenant.id} by {actor.user_id}")
    return user


def approve_user(session: Session, actor, user_id, ip_address=None) -> User:
    require_tenant_admin(actor)
    _get_scoped_user(session, actor, user_id)
    return decide_user(session, actor, user_id, True, ip_address=ip_address)


def reject_user(session: Session, actor, user_id, reason=None, ip_address=None) -> User:
    require_tenant_admin(actor)
    user = _get_scoped_user(session, actor, user_id)
    _forbid_self(actor, user, 'status')
    return decide_user(session, actor, user_id, False, reason=reason, ip_address=ip_address)


def assign_permission_level(session: Session, actor, user_id, level, ip_address=None) -> User:
    """Grant view, create or admin to a user of the same tenant."""
    require_tenant_admin(actor)
    try:
        level = PermissionLevel(level).value
    except ValueError:
        raise ValidationError("Permission level must be view, create or admin")

    user = _get_scoped_user(session, actor, user_id)
    _forbid_self(actor, user, 'permissions')
    tenant_type = actor.tenant_type or user.tenant.type
    previous = user.permission_level()

    try:
        user.permissions = permissions_for_level(level)
        user.role = admin_role_for(tenant_type) if level == 'admin' else staff_role_for(tenant_type)
        session.add(AdminAuditLog.log_action(
            actor.user_id, AuditAction.UPDATE_USER_PERMISSIONS,
            target_tenant_id=user.tenant_id,
            target_user_id=user.id,
            details={'from': previous, 'to': level},
            ip_address=ip_address,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"User {user.id} permission level {previous} -> {level} (by {actor.user_id})")
    return user


def toggle_user_status(session: Session, actor, user_id, is_active=None, ip_address=None) -> User:
    """Switch an approved user of the same tenant on or off."""
    require_tenant_admin(actor)
    user = _get_scoped_user(session, actor, user_id)
    _forbid_self(actor, user, 'status')
    if user.status != UserStatus.ACTIVE.value:
        raise InvalidStateTransition(
            f"Only approved users can be toggled (user is {user.status})",
            current_status=user.status, action='toggle'
        )

    new_value = (not user.is_active) if is_active is None else bool(is_active)
    try:
        user.is_active = new_value
        session.add(AdminAuditLog.log_action(
            actor.user_id,
            AuditAction.ACTIVATE_USER if new_value else AuditAction.DEACTIVATE_USER,
            target_tenant_id=user.tenant_id,
            target_user_id=user.id,
            ip_address=ip_address,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"User {user.id} is_active={new_value} (by {actor.user_id})")
    return user


def get_tenant_statistics(session: Session, actor) -> Dict[str, Any]:
    require_tenant_admin(actor)
    by_status = {s.value: 0 for s in UserStatus}
    rows = session.query(User.status, func.count(User.id)).filter(
        User.tenant_id == actor.tenant_id
    ).group_by(User.status)
    for status, count in rows:
        by_status[status] = count
    active = session.query(func.count(User.id)).filter(
        User.tenant_id == actor.tenant_id,
        User.is_active.is_(True)
    ).scalar()
    return {
        'users': {
            'total': sum(by_status.values()),
            'by_status': by_status,
            'active': active,
        }
    }
