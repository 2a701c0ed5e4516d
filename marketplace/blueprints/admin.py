"""
Admin blueprint - super-admin backoffice.

Routes:
- /admin/tenants - Tenant list (?status=&type=)
- /admin/tenants/pending - Tenants awaiting approval
- /admin/tenants/<id> - Tenant detail
- /admin/tenants/<id>/approve - Approve tenant (activates its first admin)
- /admin/tenants/<id>/reject - Reject tenant
- /admin/tenants/<id>/toggle-status - Switch an approved tenant on/off
- /admin/users/pending - Top-level users awaiting approval
- /admin/users/<id>/approve | reject
- /admin/super-admins - List / create super-admins
- /admin/statistics - Platform KPIs
- /admin/audit-logs - Admin action trail
"""
from flask import Blueprint, jsonify, g, request

from marketplace.database import get_session
from marketplace.middleware import require_login
from marketplace.services import admin_service
from marketplace.utils.request_args import json_body, parse_uuid, optional_uuid

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.before_request
@require_login
def check_super_admin():
    """Every admin route requires a logged-in super-admin."""
    admin_service.require_super_admin(g.actor)


@admin_bp.route('/tenants', methods=['GET'])
def tenants():
    items = admin_service.list_tenants(
        get_session(), g.actor,
        status=request.args.get('status') or None,
        tenant_type=request.args.get('type') or None,
    )
    return jsonify({'items': [tenant.to_dict() for tenant in items]})


@admin_bp.route('/tenants/pending', methods=['GET'])
def pending_tenants():
    items = admin_service.list_pending_tenants(get_session(), g.actor)
    return jsonify({'items': [tenant.to_dict() for tenant in items]})


@admin_bp.route('/tenants/<tenant_id>', methods=['GET'])
def tenant_detail(tenant_id):
    tenant = admin_service.get_tenant(get_session(), g.actor, parse_uuid(tenant_id, 'tenant_id'))
    data = tenant.to_dict()
    data['users'] = [user.to_dict() for user in tenant.users]
    return jsonify(data)


@admin_bp.route('/tenants/<tenant_id>/approve', methods=['POST'])
def approve_tenant(tenant_id):
    tenant = admin_service.approve_tenant(
        get_session(), g.actor, parse_uuid(tenant_id, 'tenant_id'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'tenant': tenant.to_dict()})


@admin_bp.route('/tenants/<tenant_id>/reject', methods=['POST'])
def reject_tenant(tenant_id):
    tenant = admin_service.reject_tenant(
        get_session(), g.actor, parse_uuid(tenant_id, 'tenant_id'),
        reason=json_body().get('reason'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'tenant': tenant.to_dict()})


@admin_bp.route('/tenants/<tenant_id>/toggle-status', methods=['PUT'])
def toggle_tenant(tenant_id):
    tenant = admin_service.toggle_tenant_status(
        get_session(), g.actor, parse_uuid(tenant_id, 'tenant_id'),
        is_active=json_body().get('is_active'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'tenant': tenant.to_dict()})


@admin_bp.route('/users/pending', methods=['GET'])
def pending_users():
    items = admin_service.list_pending_users(get_session(), g.actor)
    return jsonify({'items': [user.to_dict() for user in items]})


@admin_bp.route('/users/<user_id>/approve', methods=['POST'])
def approve_user(user_id):
    user = admin_service.approve_user(
        get_session(), g.actor, parse_uuid(user_id, 'user_id'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'user': user.to_dict()})


@admin_bp.route('/users/<user_id>/reject', methods=['POST'])
def reject_user(user_id):
    user = admin_service.reject_user(
        get_session(), g.actor, parse_uuid(user_id, 'user_id'),
        reason=json_body().get('reason'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'user': user.to_dict()})


@admin_bp.route('/super-admins', methods=['GET'])
def super_admins():
    items = admin_service.list_super_admins(get_session(), g.actor)
    return jsonify({'items': [user.to_dict() for user in items]})


@admin_bp.route('/super-admins', methods=['POST'])
def create_super_admin():
    data = json_body()
    user = admin_service.create_super_admin(
        get_session(),
        email=data.get('email'),
        password=data.get('password'),
        first_name=data.get('first_name'),
        last_name=data.get('last_name'),
        actor=g.actor,
    )
    return jsonify({'status': 'success', 'user': user.to_dict()}), 201


@admin_bp.route('/statistics', methods=['GET'])
def statistics():
    return jsonify(admin_service.get_platform_statistics(get_session(), g.actor))


@admin_bp.route('/audit-logs', methods=['GET'])
def audit_logs():
    limit = min(request.args.get('limit', 100, type=int), 500)
    items = admin_service.list_audit_logs(
        get_session(), g.actor,
        tenant_id=optional_uuid(request.args.get('tenant_id'), 'tenant_id'),
        limit=limit,
    )
    return jsonify({'items': [entry.to_dict() for entry in items]})
