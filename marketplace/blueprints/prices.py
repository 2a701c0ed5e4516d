"""
Pricing blueprint.

Routes:
- GET    /prices/products/<id> - Resolve the caller's price
- PUT    /prices/products/<id>/default - Set the default price
- GET    /prices/products/<id>/private - List private prices
- POST   /prices/products/<id>/private - Create one, or several with {"prices": [...]}
- PUT    /prices/private/<id> - Update a private price
- DELETE /prices/private/<id> - Deactivate a private price
- GET    /prices/products/<id>/history - Price audit trail
"""
from flask import Blueprint, jsonify, g, request, current_app

from marketplace.database import get_session
from marketplace.exceptions import NoPriceAvailable, ValidationError
from marketplace.middleware import require_login
from marketplace.services import price_service
from marketplace.utils.request_args import json_body, parse_uuid, optional_uuid, optional_datetime, bool_arg, currency_arg

prices_bp = Blueprint('prices', __name__, url_prefix='/prices')


def _private_entry(data):
    return {
        'company_id': optional_uuid(data.get('company_id'), 'company_id'),
        'price': data.get('price'),
        'discount_percentage': data.get('discount_percentage'),
        'currency': currency_arg(data),
        'effective_from': optional_datetime(data.get('effective_from'), 'effective_from'),
        'effective_until': optional_datetime(data.get('effective_until'), 'effective_until'),
        'notes': data.get('notes'),
    }


@prices_bp.route('/products/<product_id>', methods=['GET'])
def resolve(product_id):
    """
    Price the caller is entitled to.

    A product without any applicable price answers 200 with a null price,
    which clients render as "price on request".
    """
    product_id = parse_uuid(product_id, 'product_id')
    company_id = optional_uuid(request.args.get('company_id'), 'company_id')
    try:
        resolved = price_service.resolve_price_for_actor(get_session(), g.get('actor'), product_id, company_id)
    except NoPriceAvailable as e:
        return jsonify({
            'product_id': str(product_id),
            'price': None,
            'price_type': None,
            'message': e.message,
        }), 200
    data = resolved.to_dict()
    data['product_id'] = str(product_id)
    return jsonify(data)


@prices_bp.route('/products/<product_id>/default', methods=['PUT'])
@require_login
def set_default(product_id):
    data = json_body()
    row = price_service.set_default_price(
        get_session(), g.actor, parse_uuid(product_id, 'product_id'),
        price=data.get('price'),
        currency=currency_arg(data),
        effective_from=optional_datetime(data.get('effective_from'), 'effective_from'),
        effective_until=optional_datetime(data.get('effective_until'), 'effective_until'),
    )
    return jsonify({'status': 'success', 'default_price': row.to_dict()})


@prices_bp.route('/products/<product_id>/private', methods=['GET'])
@require_login
def list_private(product_id):
    rows = price_service.list_private_prices(
        get_session(), g.actor, parse_uuid(product_id, 'product_id'),
        include_inactive=bool_arg('include_inactive')
    )
    return jsonify({'items': [row.to_dict() for row in rows]})


@prices_bp.route('/products/<product_id>/private', methods=['POST'])
@require_login
def create_private(product_id):
    data = json_body()
    product_id = parse_uuid(product_id, 'product_id')
    if 'prices' in data:
        if not isinstance(data['prices'], list):
            raise ValidationError("'prices' must be a list")
        entries = [_private_entry(entry if isinstance(entry, dict) else {}) for entry in data['prices']]
        rows = price_service.set_private_prices(get_session(), g.actor, product_id, entries)
        return jsonify({'status': 'success', 'private_prices': [row.to_dict() for row in rows]}), 201

    row = price_service.create_private_price(get_session(), g.actor, product_id, **_private_entry(data))
    return jsonify({'status': 'success', 'private_price': row.to_dict()}), 201


@prices_bp.route('/private/<private_price_id>', methods=['PUT'])
@require_login
def update_private(private_price_id):
    data = json_body()
    changes = dict(data)
    for field in ('effective_from', 'effective_until'):
        if field in changes:
            changes[field] = optional_datetime(changes[field], field)
    row = price_service.update_private_price(
        get_session(), g.actor, parse_uuid(private_price_id, 'private_price_id'), changes
    )
    return jsonify({'status': 'success', 'private_price': row.to_dict()})


@prices_bp.route('/private/<private_price_id>', methods=['DELETE'])
@require_login
def delete_private(private_price_id):
    price_service.delete_private_price(get_session(), g.actor, parse_uuid(private_price_id, 'private_price_id'))
    return jsonify({'status': 'success'})


@prices_bp.route('/products/<product_id>/history', methods=['GET'])
@require_login
def history(product_id):
    limit = min(request.args.get('limit', current_app.config.get('PRICE_HISTORY_LIMIT', 100), type=int), 500)
    rows = price_service.get_price_history(get_session(), g.actor, parse_uuid(product_id, 'product_id'), limit)
    return jsonify({'items': [row.to_dict() for row in rows]})
