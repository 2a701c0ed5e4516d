"""
Tenant-admin blueprint: user management inside the admin's own organization.

Routes:
- /tenant-admin/users - List (paginated) / create users
- /tenant-admin/users/pending
- /tenant-admin/users/<id>/approve | reject
- /tenant-admin/users/<id>/permissions - Set view/create/admin level
- /tenant-admin/users/<id>/toggle-status
- /tenant-admin/statistics
"""
from flask import Blueprint, jsonify, g, request

from marketplace.database import get_session
from marketplace.middleware import require_login
from marketplace.services import tenant_admin_service
from marketplace.utils.request_args import json_body, parse_uuid, page_args

tenant_admin_bp = Blueprint('tenant_admin', __name__, url_prefix='/tenant-admin')


@tenant_admin_bp.before_request
@require_login
def check_tenant_admin():
    tenant_admin_service.require_tenant_admin(g.actor)


@tenant_admin_bp.route('/users', methods=['GET'])
def users():
    page, per_page = page_args()
    result = tenant_admin_service.list_users(
        get_session(), g.actor, page=page, per_page=per_page, status=request.args.get('status') or None
    )
    result['items'] = [user.to_dict() for user in result['items']]
    return jsonify(result)


@tenant_admin_bp.route('/users/pending', methods=['GET'])
def pending_users():
    items = tenant_admin_service.list_pending_users(get_session(), g.actor)
    return jsonify({'items': [user.to_dict() for user in items]})


@tenant_admin_bp.route('/users', methods=['POST'])
def create_user():
    data = json_body()
    user = tenant_admin_service.create_user(
        get_session(), g.actor,
        email=data.get('email'),
        password=data.get('password'),
        first_name=data.get('first_name'),
        last_name=data.get('last_name'),
        permission_level=data.get('permission_level') or 'view',
    )
    return jsonify({'status': 'success', 'user': user.to_dict()}), 201


@tenant_admin_bp.route('/users/<user_id>/approve', methods=['POST'])
def approve_user(user_id):
    user = tenant_admin_service.approve_user(
        get_session(), g.actor, parse_uuid(user_id, 'user_id'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'user': user.to_dict()})


@tenant_admin_bp.route('/users/<user_id>/reject', methods=['POST'])
def reject_user(user_id):
    user = tenant_admin_service.reject_user(
        get_session(), g.actor, parse_uuid(user_id, 'user_id'),
        reason=json_body().get('reason'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'user': user.to_dict()})


@tenant_admin_bp.route('/users/<user_id>/permissions', methods=['PUT'])
def permissions(user_id):
    user = tenant_admin_service.assign_permission_level(
        get_session(), g.actor, parse_uuid(user_id, 'user_id'),
        json_body().get('permission_level'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'user': user.to_dict()})


@tenant_admin_bp.route('/users/<user_id>/toggle-status', methods=['PUT'])
def toggle_user(user_id):
    user = tenant_admin_service.toggle_user_status(
        get_session(), g.actor, parse_uuid(user_id, 'user_id'),
        is_active=json_body().get('is_active'), ip_address=request.remote_addr
    )
    return jsonify({'status': 'success', 'user': user.to_dict()})


@tenant_admin_bp.route('/statistics', methods=['GET'])
def statistics():
    return jsonify(tenant_admin_service.get_tenant_statistics(get_session(), g.actor))
