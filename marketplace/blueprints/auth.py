"""
Auth blueprint: registration, login and session identity.

Routes:
- POST /auth/register - Organization + first admin (pending approval)
- POST /auth/register/user - Staff member of an approved organization
- POST /auth/register/customer - Top-level customer account
- POST /auth/login
- POST /auth/logout
- GET  /auth/me
- GET  /auth/csrf-token
"""
import logging

from flask import Blueprint, jsonify, g
from flask_wtf.csrf import generate_csrf

from marketplace.database import get_session
from marketplace.middleware import login_user, logout_user, require_login
from marketplace.services import auth_service
from marketplace.utils.request_args import json_body, optional_uuid

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    """Register an organization with its first admin user."""
    data = json_body()
    tenant, user = auth_service.register_tenant(
        get_session(),
        name=data.get('name'),
        tenant_type=data.get('type'),
        email=data.get('email'),
        password=data.get('password'),
        admin_email=data.get('admin_email'),
        first_name=data.get('first_name'),
        last_name=data.get('last_name'),
        phone=data.get('phone'),
        address=data.get('address'),
    )
    return jsonify({
        'status': 'success',
        'message': 'Registration received. An administrator will review it shortly.',
        'tenant': tenant.to_dict(),
        'user': user.to_dict(),
    }), 201


@auth_bp.route('/register/user', methods=['POST'])
def register_user():
    data = json_body()
    user = auth_service.register_user(
        get_session(),
        tenant_id=optional_uuid(data.get('tenant_id'), 'tenant_id'),
        email=data.get('email'),
        password=data.get('password'),
        role=data.get('role'),
        first_name=data.get('first_name'),
        last_name=data.get('last_name'),
    )
    return jsonify({
        'status': 'success',
        'message': 'Registration received. Your organization admin will review it.',
        'user': user.to_dict(),
    }), 201


@auth_bp.route('/register/customer', methods=['POST'])
def register_customer():
    data = json_body()
    user = auth_service.register_customer(
        get_session(),
        email=data.get('email'),
        password=data.get('password'),
        first_name=data.get('first_name'),
        last_name=data.get('last_name'),
    )
    return jsonify({'status': 'success', 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    user = auth_service.authenticate(get_session(), data.get('email'), data.get('password'))
    login_user(user)
    return jsonify({'status': 'success', 'user': user.to_dict()}), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({'status': 'success'}), 200


@auth_bp.route('/me')
@require_login
def me():
    user = g.user
    return jsonify({
        'user': user.to_dict(),
        'tenant': user.tenant.to_dict() if user.tenant else None,
    })


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token for the X-CSRFToken header of state-changing requests."""
    return jsonify({'csrf_token': generate_csrf()})
