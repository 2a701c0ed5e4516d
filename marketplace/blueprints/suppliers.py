"""
Supplier directory blueprint (public reads).

Routes:
- GET /suppliers - Operational suppliers and service providers (?type=&q=)
- GET /suppliers/<id> - One supplier with its active product count
- GET /suppliers/<id>/products - Supplier catalog with the caller's prices
"""
from flask import Blueprint, jsonify, g, request

from marketplace.database import get_session
from marketplace.exceptions import NoPriceAvailable
from marketplace.services import price_service, supplier_service
from marketplace.utils.request_args import parse_uuid, optional_uuid, page_args

suppliers_bp = Blueprint('suppliers', __name__, url_prefix='/suppliers')


@suppliers_bp.route('', methods=['GET'])
def directory():
    items = supplier_service.list_suppliers(
        get_session(),
        tenant_type=request.args.get('type') or None,
        search=request.args.get('q'),
    )
    return jsonify({'items': items})


@suppliers_bp.route('/<supplier_id>', methods=['GET'])
def detail(supplier_id):
    supplier = supplier_service.get_supplier(get_session(), parse_uuid(supplier_id, 'supplier_id'))
    return jsonify(supplier)


@suppliers_bp.route('/<supplier_id>/products', methods=['GET'])
def products(supplier_id):
    session = get_session()
    page, per_page = page_args()
    result = supplier_service.list_supplier_catalog(
        session, parse_uuid(supplier_id, 'supplier_id'),
        search=request.args.get('q'),
        category_id=optional_uuid(request.args.get('category_id'), 'category_id'),
        service_category_id=optional_uuid(request.args.get('service_category_id'), 'service_category_id'),
        page=page,
        per_page=per_page,
    )

    items = []
    for product in result['items']:
        data = product.to_dict()
        try:
            data['price'] = price_service.resolve_price_for_actor(session, g.get('actor'), product.id).to_dict()
        except NoPriceAvailable:
            data['price'] = None
        items.append(data)
    result['items'] = items
    return jsonify(result)
