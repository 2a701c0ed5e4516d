"""Integration tests for registration, super-admin approval and login rules."""
import uuid

import pytest

from marketplace.exceptions import (
    AuthenticationError, ForbiddenError, InvalidStateTransition, ConflictError, ValidationError, NotFoundError
)
from marketplace.models import AdminAuditLog, AuditAction, TenantType, TenantStatus, User, UserStatus
from marketplace.services import admin_service, auth_service


@pytest.fixture
def admin_actor(as_actor, super_admin):
    return as_actor(super_admin)


@pytest.fixture
def registration(session):
    """A freshly registered supplier and its first admin."""
    return auth_service.register_tenant(
        session,
        name='Rocky Quarry',
        tenant_type='supplier',
        email='sales@rockyquarry.test',
        password='quarry-pass-1',
        first_name='Rita',
    )


class TestRegistration:

    def test_tenant_and_admin_start_pending(self, registration):
        tenant, user = registration

        assert tenant.status == 'pending'
        assert tenant.is_active is False
        assert user.status == 'pending'
        assert user.role == 'supplier_admin'
        assert user.permissions == {'view': True, 'create': True, 'admin': True}

    def test_pending_admin_cannot_log_in(self, session, registration):
        with pytest.raises(ForbiddenError) as exc:
            auth_service.authenticate(session, 'sales@rockyquarry.test', 'quarry-pass-1')
        assert 'pending approval' in exc.value.message

    def test_duplicate_email(self, session, registration):
        with pytest.raises(ConflictError):
            auth_service.register_tenant(
                session, name='Copy', tenant_type='company',
                email='sales@rockyquarry.test', password='another-pass'
            )

    @pytest.mark.parametrize('kwargs', [
        {'tenant_type': 'bank'},
        {'email': 'not-an-email'},
        {'password': 'short'},
        {'name': '  '},
    ])
    def test_invalid_registration(self, session, kwargs):
        data = dict(name='Valid Co', tenant_type='company', email='valid@co.test', password='long-enough')
        data.update(kwargs)

        with pytest.raises(ValidationError):
            auth_service.register_tenant(session, **data)

    def test_staff_registration_requires_operational_tenant(self, session, registration, company):
        tenant, _ = registration

        with pytest.raises(ForbiddenError):
            auth_service.register_user(session, tenant.id, 'new@rockyquarry.test', 'password123')

        user = auth_service.register_user(session, company.id, 'buyer@buildco.test', 'password123')
        assert user.role == 'company_staff'
        assert user.status == 'pending'

    def test_self_registration_cannot_claim_admin(self, session, company):
        with pytest.raises(ValidationError):
            auth_service.register_user(
                session, company.id, 'boss@buildco.test', 'password123', role='company_admin'
            )

    def test_unknown_tenant(self, session):
        with pytest.raises(NotFoundError):
            auth_service.register_user(session, uuid.uuid4(), 'a@b.test', 'password123')


class TestTenantApproval:

    def test_approve_activates_tenant_and_admin(self, session, registration, admin_actor):
        tenant, user = registration

        admin_service.approve_tenant(session, admin_actor, tenant.id)

        assert tenant.status == 'active'
        assert tenant.is_active is True
        assert tenant.approved_by == admin_actor.user_id
        assert session.get(User, user.id).status == 'active'
        logged_in = auth_service.authenticate(session, 'sales@rockyquarry.test', 'quarry-pass-1')
        assert logged_in.last_login_at is not None

    def test_reject_blocks_login(self, session, registration, admin_actor):
        """Rejected supplier: reason stored and its admin can never log in."""
        tenant, _ = registration

        admin_service.reject_tenant(session, admin_actor, tenant.id, reason='incomplete documents')

        assert tenant.status == 'rejected'
        assert tenant.rejection_reason == 'incomplete documents'
        with pytest.raises(ForbiddenError) as exc:
            auth_service.authenticate(session, 'sales@rockyquarry.test', 'quarry-pass-1')
        assert 'rejected' in exc.value.message

    def test_decisions_are_one_shot(self, session, registration, admin_actor):
        tenant, _ = registration
        admin_service.reject_tenant(session, admin_actor, tenant.id, reason='incomplete documents')

        with pytest.raises(InvalidStateTransition):
            admin_service.approve_tenant(session, admin_actor, tenant.id)
        with pytest.raises(InvalidStateTransition):
            admin_service.reject_tenant(session, admin_actor, tenant.id)

    def test_decisions_are_audited(self, session, registration, admin_actor):
        tenant, _ = registration
        admin_service.approve_tenant(session, admin_actor, tenant.id, ip_address='10.0.0.1')

        entry = session.query(AdminAuditLog).one()
        assert entry.action == AuditAction.APPROVE_TENANT
        assert entry.target_tenant_id == tenant.id
        assert entry.ip_address == '10.0.0.1'

    def test_only_super_admin_decides(self, session, registration, as_actor, supplier_admin):
        tenant, _ = registration

        with pytest.raises(ForbiddenError):
            admin_service.approve_tenant(session, as_actor(supplier_admin), tenant.id)

    def test_pending_list(self, session, registration, supplier, admin_actor):
        pending = admin_service.list_pending_tenants(session, admin_actor)
        assert [t.name for t in pending] == ['Rocky Quarry']


class TestTenantToggle:

    def test_switched_off_tenant_blocks_its_users(self, session, supplier, supplier_admin, admin_actor):
        email = supplier_admin.email
        admin_service.toggle_tenant_status(session, admin_actor, supplier.id)

        assert supplier.is_active is False
        assert supplier.status == 'active'
        with pytest.raises(ForbiddenError) as exc:
            auth_service.authenticate(session, email, 'password123')
        assert 'deactivated' in exc.value.message

        admin_service.toggle_tenant_status(session, admin_actor, supplier.id, is_active=True)
        assert auth_service.authenticate(session, email, 'password123').id == supplier_admin.id

    def test_pending_tenant_cannot_be_toggled(self, session, registration, admin_actor):
        tenant, _ = registration

        with pytest.raises(InvalidStateTransition):
            admin_service.toggle_tenant_status(session, admin_actor, tenant.id)


class TestUserApproval:

    def test_customer_approval(self, session, admin_actor):
        customer = auth_service.register_customer(session, 'homeowner@test.com', 'password123')
        assert [u.id for u in admin_service.list_pending_users(session, admin_actor)] == [customer.id]

        admin_service.approve_user(session, admin_actor, customer.id)

        assert customer.status == 'active'
        assert auth_service.authenticate(session, 'homeowner@test.com', 'password123').id == customer.id

    def test_rejected_user_cannot_log_in(self, session, admin_actor):
        customer = auth_service.register_customer(session, 'homeowner@test.com', 'password123')
        admin_service.reject_user(session, admin_actor, customer.id, reason='duplicate account')

        with pytest.raises(ForbiddenError):
            auth_service.authenticate(session, 'homeowner@test.com', 'password123')

    def test_wrong_password(self, session, supplier_admin):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate(session, supplier_admin.email, 'wrong-password')

    def test_unknown_email(self, session):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate(session, 'nobody@test.com', 'password123')

    def test_deactivated_user(self, session, supplier, make_user):
        user = make_user(supplier, is_active=False)

        with pytest.raises(ForbiddenError):
            auth_service.authenticate(session, user.email, 'password123')


class TestSuperAdmins:

    def test_bootstrap_without_actor(self, session):
        user = admin_service.create_super_admin(session, 'root@platform.test', 'password123')

        assert user.role == 'super_admin'
        assert user.status == UserStatus.ACTIVE.value
        assert session.query(AdminAuditLog).filter(
            AdminAuditLog.action == AuditAction.CREATE_SUPER_ADMIN
        ).count() == 1

    def test_super_admin_creation_requires_super_admin(self, session, as_actor, company_admin):
        with pytest.raises(ForbiddenError):
            admin_service.create_super_admin(
                session, 'root@platform.test', 'password123', actor=as_actor(company_admin)
            )

    def test_platform_statistics(self, session, registration, supplier, company, admin_actor):
        stats = admin_service.get_platform_statistics(session, admin_actor)

        assert stats['tenants']['total'] == 3
        assert stats['tenants']['by_status'][TenantStatus.PENDING.value] == 1
        assert stats['tenants']['by_type'][TenantType.SUPPLIER.value] == 2
