"""
Quote negotiation blueprint.

Routes:
- POST /quotes - Company requests a quote for a product
- GET  /quotes - Visible quote requests (?status=&product_id=&counterparty_id=)
- GET  /quotes/stats
- GET  /quotes/<id>
- POST /quotes/<id>/respond | counter | accept | reject | cancel
"""
from flask import Blueprint, jsonify, g, request

from marketplace.database import get_session
from marketplace.middleware import require_login, require_tenant_type
from marketplace.models.tenant import TenantType, SELLER_TYPES
from marketplace.services import quote_service
from marketplace.utils.request_args import json_body, parse_uuid, optional_uuid, optional_datetime, currency_arg

quotes_bp = Blueprint('quotes', __name__, url_prefix='/quotes')


def _offer_args(data):
    return {
        'price': data.get('price'),
        'currency': data.get('currency'),
        'quantity': data.get('quantity'),
        'unit': data.get('unit'),
        'valid_until': optional_datetime(data.get('valid_until'), 'valid_until'),
        'message': data.get('message'),
        'terms': data.get('terms'),
    }


def _quote_response(quote, status_code=200):
    return jsonify({'status': 'success', 'quote_request': quote.to_dict(include_offers=True)}), status_code


@quotes_bp.route('', methods=['POST'])
@require_login
@require_tenant_type(TenantType.COMPANY.value)
def create():
    data = json_body()
    quote = quote_service.create_quote_request(
        get_session(), g.actor,
        product_id=parse_uuid(data.get('product_id'), 'product_id'),
        unit=data.get('unit'),
        quantity=data.get('quantity'),
        requested_price=data.get('requested_price'),
        currency=currency_arg(data),
        message=data.get('message'),
        expires_at=optional_datetime(data.get('expires_at'), 'expires_at'),
    )
    return _quote_response(quote, 201)


@quotes_bp.route('', methods=['GET'])
@require_login
def list_quotes():
    quotes = quote_service.list_quote_requests(
        get_session(), g.actor,
        status=request.args.get('status') or None,
        product_id=optional_uuid(request.args.get('product_id'), 'product_id'),
        counterparty_id=optional_uuid(request.args.get('counterparty_id'), 'counterparty_id'),
    )
    return jsonify({'items': [quote.to_dict() for quote in quotes]})


@quotes_bp.route('/stats', methods=['GET'])
@require_login
def stats():
    return jsonify(quote_service.get_quote_statistics(get_session(), g.actor))


@quotes_bp.route('/<quote_id>', methods=['GET'])
@require_login
def detail(quote_id):
    quote = quote_service.get_quote_request(get_session(), g.actor, parse_uuid(quote_id, 'quote_id'))
    return jsonify(quote.to_dict(include_offers=True))


@quotes_bp.route('/<quote_id>/respond', methods=['POST'])
@require_login
@require_tenant_type(*SELLER_TYPES)
def respond(quote_id):
    quote = quote_service.respond_to_quote(
        get_session(), g.actor, parse_uuid(quote_id, 'quote_id'), **_offer_args(json_body())
    )
    return _quote_response(quote)


@quotes_bp.route('/<quote_id>/counter', methods=['POST'])
@require_login
def counter(quote_id):
    quote = quote_service.counter_quote(
        get_session(), g.actor, parse_uuid(quote_id, 'quote_id'), **_offer_args(json_body())
    )
    return _quote_response(quote)


@quotes_bp.route('/<quote_id>/accept', methods=['POST'])
@require_login
def accept(quote_id):
    quote = quote_service.accept_quote(get_session(), g.actor, parse_uuid(quote_id, 'quote_id'))
    return _quote_response(quote)


@quotes_bp.route('/<quote_id>/reject', methods=['POST'])
@require_login
def reject(quote_id):
    quote = quote_service.reject_quote(
        get_session(), g.actor, parse_uuid(quote_id, 'quote_id'), reason=json_body().get('reason')
    )
    return _quote_response(quote)


@quotes_bp.route('/<quote_id>/cancel', methods=['POST'])
@require_login
def cancel(quote_id):
    quote = quote_service.cancel_quote(get_session(), g.actor, parse_uuid(quote_id, 'quote_id'))
    return _quote_response(quote)
