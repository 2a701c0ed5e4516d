"""Integration tests for tenant-admin user management."""
import uuid

import pytest

from marketplace.exceptions import ForbiddenError, InvalidStateTransition, ValidationError, NotFoundError
from marketplace.models import TenantType
from marketplace.services import tenant_admin_service, auth_service


@pytest.fixture
def admin_actor(as_actor, company_admin):
    return as_actor(company_admin)


@pytest.fixture
def applicant(session, company):
    return auth_service.register_user(session, company.id, 'estimator@buildco.test', 'password123')


class TestTenantAdminAccess:

    def test_staff_is_not_tenant_admin(self, session, company, make_user, as_actor):
        staff = make_user(company, level='create')

        with pytest.raises(ForbiddenError):
            tenant_admin_service.list_pending_users(session, as_actor(staff))

    def test_cannot_manage_other_tenants(self, session, admin_actor, make_tenant, make_user):
        foreign = make_user(make_tenant(TenantType.SUPPLIER.value), level='view', status='pending')

        with pytest.raises(ForbiddenError):
            tenant_admin_service.approve_user(session, admin_actor, foreign.id)

    def test_unknown_user(self, session, admin_actor):
        with pytest.raises(NotFoundError):
            tenant_admin_service.approve_user(session, admin_actor, uuid.uuid4())


class TestUserDecisions:

    def test_approve_applicant(self, session, admin_actor, applicant):
        assert [u.id for u in tenant_admin_service.list_pending_users(session, admin_actor)] == [applicant.id]

        approved = tenant_admin_service.approve_user(session, admin_actor, applicant.id)

        assert approved.status == 'active'
        assert auth_service.authenticate(session, 'estimator@buildco.test', 'password123').id == applicant.id

    def test_reject_applicant(self, session, admin_actor, applicant):
        rejected = tenant_admin_service.reject_user(session, admin_actor, applicant.id, reason='Unknown person')

        assert rejected.status == 'rejected'
        assert rejected.rejection_reason == 'Unknown person'
        with pytest.raises(InvalidStateTransition):
            tenant_admin_service.approve_user(session, admin_actor, applicant.id)

    def test_create_user_starts_pending(self, session, admin_actor, company):
        user = tenant_admin_service.create_user(
            session, admin_actor, 'buyer@buildco.test', 'password123', permission_level='create'
        )

        assert user.tenant_id == company.id
        assert user.status == 'pending'
        assert user.role == 'company_staff'
        assert user.permissions['create'] is True

    def test_create_user_rejects_unknown_level(self, session, admin_actor):
        with pytest.raises(ValidationError):
            tenant_admin_service.create_user(
                session, admin_actor, 'buyer@buildco.test', 'password123', permission_level='owner'
            )


class TestPermissions:

    def test_grant_admin_promotes_role(self, session, admin_actor, company, make_user):
        user = make_user(company, level='view')

        updated = tenant_admin_service.assign_permission_level(session, admin_actor, user.id, 'admin')

        assert updated.role == 'company_admin'
        assert updated.permissions == {'view': True, 'create': True, 'admin': True}

    def test_lower_level_demotes_to_staff(self, session, admin_actor, company, make_user):
        other_admin = make_user(company, level='admin')

        updated = tenant_admin_service.assign_permission_level(session, admin_actor, other_admin.id, 'view')

        assert updated.role == 'company_staff'
        assert updated.permissions['create'] is False

    def test_cannot_change_own_permissions(self, session, admin_actor, company_admin):
        with pytest.raises(ForbiddenError):
            tenant_admin_service.assign_permission_level(session, admin_actor, company_admin.id, 'view')

    def test_toggle_only_for_approved_users(self, session, admin_actor, applicant, company, make_user):
        with pytest.raises(InvalidStateTransition):
            tenant_admin_service.toggle_user_status(session, admin_actor, applicant.id)

        member = make_user(company, level='view')
        toggled = tenant_admin_service.toggle_user_status(session, admin_actor, member.id)
        assert toggled.is_active is False


class TestTenantListing:

    def test_list_users_is_paginated(self, session, admin_actor, company, make_user):
        for _ in range(3):
            make_user(company, level='view')

        result = tenant_admin_service.list_users(session, admin_actor, page=1, per_page=2)

        assert result['total'] == 4
        assert len(result['items']) == 2
        assert result['pages'] == 2

    def test_statistics(self, session, admin_actor, applicant):
        stats = tenant_admin_service.get_tenant_statistics(session, admin_actor)

        assert stats['users']['total'] == 2
        assert stats['users']['by_status']['pending'] == 1
        assert stats['users']['active'] == 1
