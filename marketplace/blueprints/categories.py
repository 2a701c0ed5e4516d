"""
Category blueprint. Product categories live under /categories and service
categories under /service-categories; both share the same views.

Reads are public. Writes require a super-admin.
"""
from flask import Blueprint, jsonify, g

from marketplace.database import get_session
from marketplace.middleware import require_login, require_roles
from marketplace.models.user import UserRole
from marketplace.services import category_service
from marketplace.services.category_service import PRODUCT_KIND, SERVICE_KIND
from marketplace.utils.request_args import json_body, parse_uuid, optional_uuid, bool_arg

categories_bp = Blueprint('categories', __name__)

PRODUCT_ROOT = {'kind': PRODUCT_KIND}
SERVICE_ROOT = {'kind': SERVICE_KIND}


def _changes(data):
    changes = {
        field: data[field]
        for field in ('name', 'description', 'image_url', 'display_order', 'is_active')
        if field in data
    }
    if 'parent_id' in data:
        changes['parent_id'] = optional_uuid(data['parent_id'], 'parent_id')
    return changes


@categories_bp.route('/categories', methods=['GET'], defaults=PRODUCT_ROOT)
@categories_bp.route('/service-categories', methods=['GET'], defaults=SERVICE_ROOT)
def tree(kind):
    include_inactive = bool_arg('include_inactive') and g.get('actor') is not None and g.actor.is_super_admin
    return jsonify({
        'items': category_service.get_category_tree(get_session(), kind, include_inactive=include_inactive)
    })


@categories_bp.route('/categories/flat', methods=['GET'], defaults=PRODUCT_ROOT)
@categories_bp.route('/service-categories/flat', methods=['GET'], defaults=SERVICE_ROOT)
def flat(kind):
    return jsonify({'items': category_service.get_flat_categories(get_session(), kind)})


@categories_bp.route('/categories/<category_id>', methods=['GET'], defaults=PRODUCT_ROOT)
@categories_bp.route('/service-categories/<category_id>', methods=['GET'], defaults=SERVICE_ROOT)
def detail(category_id, kind):
    category = category_service.get_category(get_session(), parse_uuid(category_id, 'category_id'), kind)
    return jsonify(category.to_dict(include_children=True))


@categories_bp.route('/categories', methods=['POST'], defaults=PRODUCT_ROOT)
@categories_bp.route('/service-categories', methods=['POST'], defaults=SERVICE_ROOT)
@require_login
@require_roles(UserRole.SUPER_ADMIN.value)
def create(kind):
    data = json_body()
    category = category_service.create_category(
        get_session(), g.actor,
        name=data.get('name'),
        parent_id=optional_uuid(data.get('parent_id'), 'parent_id'),
        description=data.get('description'),
        image_url=data.get('image_url'),
        display_order=data.get('display_order'),
        kind=kind,
    )
    return jsonify({'status': 'success', 'category': category.to_dict()}), 201


@categories_bp.route('/categories/<category_id>', methods=['PUT'], defaults=PRODUCT_ROOT)
@categories_bp.route('/service-categories/<category_id>', methods=['PUT'], defaults=SERVICE_ROOT)
@require_login
@require_roles(UserRole.SUPER_ADMIN.value)
def update(category_id, kind):
    category = category_service.update_category(
        get_session(), g.actor, parse_uuid(category_id, 'category_id'), _changes(json_body()), kind
    )
    return jsonify({'status': 'success', 'category': category.to_dict()})


@categories_bp.route('/categories/<category_id>', methods=['DELETE'], defaults=PRODUCT_ROOT)
@categories_bp.route('/service-categories/<category_id>', methods=['DELETE'], defaults=SERVICE_ROOT)
@require_login
@require_roles(UserRole.SUPER_ADMIN.value)
def delete(category_id, kind):
    category_service.delete_category(get_session(), g.actor, parse_uuid(category_id, 'category_id'), kind)
    return jsonify({'status': 'success'})
