"""
Catalog blueprint: supplier product management and public catalog search.

Routes:
- GET    /products - Search the public catalog
- GET    /products/<id> - Product detail with the caller's price
- POST   /products - Create (supplier / service provider)
- PUT    /products/<id> - Update own product
- DELETE /products/<id> - Soft delete own product
- GET    /products/mine - Own products
- GET    /products/stats - Own catalog statistics
"""
from flask import Blueprint, jsonify, g, request

from marketplace.database import get_session
from marketplace.exceptions import NoPriceAvailable
from marketplace.middleware import require_login
from marketplace.services import product_service, price_service
from marketplace.utils.request_args import json_body, parse_uuid, optional_uuid, page_args, bool_arg, currency_arg

catalog_bp = Blueprint('catalog', __name__, url_prefix='/products')


def _product_payload(data):
    """Copy of the body with category references parsed to UUIDs."""
    payload = dict(data)
    for field in ('category_id', 'service_category_id'):
        if field in payload:
            payload[field] = optional_uuid(payload[field], field)
    return payload


@catalog_bp.route('', methods=['GET'])
def search():
    page, per_page = page_args()
    result = product_service.search_catalog(
        get_session(),
        search=request.args.get('q'),
        product_type=request.args.get('type'),
        category_id=optional_uuid(request.args.get('category_id'), 'category_id'),
        service_category_id=optional_uuid(request.args.get('service_category_id'), 'service_category_id'),
        supplier_id=optional_uuid(request.args.get('supplier_id'), 'supplier_id'),
        page=page,
        per_page=per_page,
    )
    result['items'] = [product.to_dict() for product in result['items']]
    return jsonify(result)


@catalog_bp.route('/mine', methods=['GET'])
@require_login
def my_products():
    products = product_service.list_supplier_products(
        get_session(), g.actor, include_inactive=bool_arg('include_inactive')
    )
    return jsonify({'items': [product.to_dict() for product in products]})


@catalog_bp.route('/stats', methods=['GET'])
@require_login
def stats():
    return jsonify(product_service.get_supplier_statistics(get_session(), g.actor))


@catalog_bp.route('/<product_id>', methods=['GET'])
def detail(product_id):
    session = get_session()
    product = product_service.get_product(session, parse_uuid(product_id, 'product_id'))
    data = product.to_dict()
    try:
        data['price'] = price_service.resolve_price_for_actor(session, g.get('actor'), product.id).to_dict()
    except NoPriceAvailable:
        data['price'] = None
    return jsonify(data)


@catalog_bp.route('', methods=['POST'])
@require_login
def create():
    payload = _product_payload(json_body())
    payload['currency'] = currency_arg(payload)
    product = product_service.create_product(get_session(), g.actor, payload)
    return jsonify({'status': 'success', 'product': product.to_dict()}), 201


@catalog_bp.route('/<product_id>', methods=['PUT'])
@require_login
def update(product_id):
    product = product_service.update_product(
        get_session(), g.actor, parse_uuid(product_id, 'product_id'), _product_payload(json_body())
    )
    return jsonify({'status': 'success', 'product': product.to_dict()})


@catalog_bp.route('/<product_id>', methods=['DELETE'])
@require_login
def delete(product_id):
    product_service.delete_product(get_session(), g.actor, parse_uuid(product_id, 'product_id'))
    return jsonify({'status': 'success'})
