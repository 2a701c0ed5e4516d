"""
Quote negotiation workflow between a company and a product's supplier.

    pending   -> responded | countered | rejected | cancelled | expired
    responded -> accepted | rejected | countered
    countered -> accepted | rejected | countered

accepted, rejected, cancelled and expired are terminal. Expiry is lazy: a
quote past its expires_at reads as expired (see effective_status) and no
longer accepts actions, but the stored status is left untouched.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from marketplace.blueprints.metrics import quote_transitions_total
from marketplace.exceptions import (
    ValidationError, NotFoundError, ForbiddenError, InvalidStateTransition
)
from marketplace.models import (
    Product, Tenant, TenantType, QuoteRequest, QuoteOffer, QuoteStatus, QuoteParty,
    TERMINAL_STATUSES, SELLER_TYPES
)
from marketplace.services.event_service import (
    PendingEvents, tenant_scope, RFQ_CREATED, QUOTE_UPDATED, QUOTE_RESPONDED,
    QUOTE_COUNTERED, QUOTE_ACCEPTED, QUOTE_REJECTED, QUOTE_CANCELLED
)
from marketplace.utils.formatters import fmt_id, fmt_money, fmt_dt
from marketplace.utils.time import utcnow, to_naive_utc
from marketplace.utils.validation import is_valid_price, is_valid_currency, to_decimal, DEFAULT_CURRENCY

logger = logging.getLogger(__name__)

PENDING = QuoteStatus.PENDING.value
RESPONDED = QuoteStatus.RESPONDED.value
COUNTERED = QuoteStatus.COUNTERED.value
ACCEPTED = QuoteStatus.ACCEPTED.value
REJECTED = QuoteStatus.REJECTED.value
CANCELLED = QuoteStatus.CANCELLED.value
EXPIRED = QuoteStatus.EXPIRED.value

SUPPLIER = QuoteParty.SUPPLIER.value
COMPANY = QuoteParty.COMPANY.value

# action -> (statuses it may start from, parties allowed to perform it, resulting status)
TRANSITIONS = {
    'respond': ({PENDING}, {SUPPLIER}, RESPONDED),
    'counter': ({PENDING, RESPONDED, COUNTERED}, {SUPPLIER, COMPANY}, COUNTERED),
    'accept': ({RESPONDED, COUNTERED}, {SUPPLIER, COMPANY}, ACCEPTED),
    'reject': ({PENDING, RESPONDED, COUNTERED}, {SUPPLIER, COMPANY}, REJECTED),
    'cancel': ({PENDING}, {COMPANY}, CANCELLED),
}

INNER_EVENTS = {
    'respond': QUOTE_RESPONDED,
    'counter': QUOTE_COUNTERED,
    'accept': QUOTE_ACCEPTED,
    'reject': QUOTE_REJECTED,
    'cancel': QUOTE_CANCELLED,
}


def can_apply(action: str, status: str) -> bool:
    """Whether ``action`` is allowed from the (effective) ``status``."""
    allowed_from, _, _ = TRANSITIONS[action]
    return status in allowed_from


def party_of(actor, quote: QuoteRequest) -> Optional[str]:
    """Which side of the negotiation the actor is on, if any."""
    if actor.belongs_to(quote.supplier_id):
        return SUPPLIER
    if actor.belongs_to(quote.company_id):
        return COMPANY
    return None


def counterpart(party: str) -> str:
    return COMPANY if party == SUPPLIER else SUPPLIER


def _scope_for(quote: QuoteRequest, party: str) -> str:
    return tenant_scope(quote.supplier_id if party == SUPPLIER else quote.company_id)


def _quote_event_payload(quote: QuoteRequest, inner_event: str, now) -> Dict[str, Any]:
    return {
        'event': inner_event,
        'data': {
            'quote_request_id': fmt_id(quote.id),
            'product_id': fmt_id(quote.product_id),
            'status': quote.effective_status(now),
            'quoted_price': fmt_money(quote.quoted_price),
            'currency': quote.quoted_currency or quote.currency,
            'last_offer_by': quote.last_offer_by,
            'updated_at': fmt_dt(quote.updated_at),
        },
    }


def _validate_optional_quantity(quantity):
    if quantity is None:
        return None
    number = to_decimal(quantity)
    if number is None or number <= 0:
        raise ValidationError("Quantity must be greater than 0")
    return number


def _validate_offer_price(price, currency):
    if price is None or not is_valid_price(price):
        raise ValidationError("Price must be greater than 0 with at most 2 decimal places")
    if currency is not None and not is_valid_currency(currency):
        raise ValidationError("Currency must be a 3-letter uppercase code")


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def create_quote_request(session: Session, actor, product_id, unit=None, quantity=None,
                         requested_price=None, currency=None, message=None, expires_at=None,
                         relay=None) -> QuoteRequest:
    """
    Create an RFQ from a company to the product's supplier.

    ``unit`` defaults to the product's unit. The supplier tenant is notified
    with an ``rfq:created`` event once the request is stored.
    """
    if actor.tenant_type != TenantType.COMPANY.value:
        raise ForbiddenError("Only companies can request quotes")
    if not actor.can('create'):
        raise ForbiddenError("Your permissions do not allow requesting quotes")

    product = session.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")
    supplier = session.get(Tenant, product.supplier_id)
    if supplier is None or not supplier.is_seller or not supplier.is_operational:
        raise NotFoundError("Supplier not available")

    now = utcnow()
    unit = (unit or product.unit or '').strip()
    if not unit:
        raise ValidationError("Unit is required")
    quantity = _validate_optional_quantity(quantity)
    if requested_price is not None and not is_valid_price(requested_price):
        raise ValidationError("Requested price must be greater than 0 with at most 2 decimal places")
    currency = currency or DEFAULT_CURRENCY
    if not is_valid_currency(currency):
        raise ValidationError("Currency must be a 3-letter uppercase code")
    if expires_at is not None:
        expires_at = to_naive_utc(expires_at)
        if expires_at <= now:
            raise ValidationError("Expiry must be in the future")

    quote = QuoteRequest(
        product_id=product.id,
        company_id=actor.tenant_id,
        supplier_id=product.supplier_id,
        requested_by=actor.user_id,
        quantity=quantity,
        unit=unit,
        requested_price=to_decimal(requested_price),
        currency=currency,
        message=message,
        status=PENDING,
        expires_at=expires_at,
    )
    pending = PendingEvents()
    try:
        session.add(quote)
        session.commit()
    except Exception:
        session.rollback()
        raise

    pending.add(RFQ_CREATED, tenant_scope(quote.supplier_id), {
        'quote_request_id': fmt_id(quote.id),
        'product_id': fmt_id(quote.product_id),
        'company_id': fmt_id(quote.company_id),
        'quantity': str(quote.quantity) if quote.quantity is not None else None,
        'unit': quote.unit,
        'created_at': fmt_dt(quote.created_at),
    })
    quote_transitions_total.labels(action='create').inc()
    logger.info(f"Quote request {quote.id} created by {actor.user_id} for product {quote.product_id}")
    pending.flush(relay)
    return quote


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def _load_for_action(session: Session, actor, quote_id, action: str, now):
    """
    Fetch and lock a quote, then check the actor and the status.

    Order of checks: existence, party/role, state.
    """
    quote = session.query(QuoteRequest).filter(
        QuoteRequest.id == quote_id
    ).with_for_update().first()
    if quote is None:
        raise NotFoundError("Quote request not found")

    allowed_from, allowed_parties, _ = TRANSITIONS[action]
    party = party_of(actor, quote)
    if party is None:
        raise ForbiddenError("You are not a party to this quote request")
    if party not in allowed_parties:
        raise ForbiddenError(f"The {party} cannot {action} this quote request")
    if not actor.can('create'):
        raise ForbiddenError("Your permissions do not allow negotiating quotes")

    status = quote.effective_status(now)
    if status not in allowed_from:
        if status == EXPIRED:
            message = "Quote request has expired"
        elif status in TERMINAL_STATUSES:
            message = f"Quote request is already {status}"
        else:
            message = f"Cannot {action} a quote request that is {status}"
        raise InvalidStateTransition(message, current_status=status, action=action)

    return quote, party


def _apply(session: Session, actor, quote_id, action: str, mutate, recipients, relay=None) -> QuoteRequest:
    """
    Run one workflow action inside a transaction and publish after commit.

    ``mutate(quote, party, now)`` changes the quote; ``recipients(party)``
    lists the parties to notify.
    """
    now = utcnow()
    try:
        quote, party = _load_for_action(session, actor, quote_id, action, now)
        previous = quote.status
        mutate(quote, party, now)
        quote.status = TRANSITIONS[action][2]
        quote.updated_at = now
        session.commit()
    except Exception:
        session.rollback()
        raise

    pending = PendingEvents()
    payload = _quote_event_payload(quote, INNER_EVENTS[action], now)
    for recipient in recipients(party):
        pending.add(QUOTE_UPDATED, _scope_for(quote, recipient), payload)

    quote_transitions_total.labels(action=action).inc()
    logger.info(f"Quote request {quote.id}: {previous} -> {quote.status} ({action} by {party} user {actor.user_id})")
    pending.flush(relay)
    return quote


def _add_offer(session: Session, actor, quote: QuoteRequest, party: str, now, price, currency=None,
               quantity=None, unit=None, valid_until=None, message=None, terms=None) -> QuoteOffer:
    currency = currency or quote.currency or DEFAULT_CURRENCY
    offer = QuoteOffer(
        quote_request_id=quote.id,
        side=party,
        offered_by=actor.user_id,
        price=to_decimal(price),
        currency=currency,
        quantity=to_decimal(quantity) if quantity is not None else quote.quantity,
        unit=unit or quote.unit,
        valid_until=to_naive_utc(valid_until) if valid_until is not None else None,
        message=message,
        terms=terms,
    )
    session.add(offer)
    quote.quoted_price = offer.price
    quote.quoted_currency = currency
    quote.last_offer_by = party
    return offer


def _only_counterpart(party):
    return [counterpart(party)]


def _both_parties(party):
    return [SUPPLIER, COMPANY]


def respond_to_quote(session: Session, actor, quote_id, price, currency=None, quantity=None, unit=None,
                     valid_until=None, message=None, terms=None, relay=None) -> QuoteRequest:
    """Supplier answers a pending request with a price."""
    _validate_offer_price(price, currency)
    _validate_optional_quantity(quantity)

    def mutate(quote, party, now):
        _add_offer(session, actor, quote, party, now, price, currency, quantity, unit,
                   valid_until, message, terms)
        quote.responded_at = now

    return _apply(session, actor, quote_id, 'respond', mutate, _only_counterpart, relay)


def counter_quote(session: Session, actor, quote_id, price, currency=None, quantity=None, unit=None,
                  valid_until=None, message=None, terms=None, relay=None) -> QuoteRequest:
    """Either party proposes a revised price."""
    _validate_offer_price(price, currency)
    _validate_optional_quantity(quantity)

    def mutate(quote, party, now):
        _add_offer(session, actor, quote, party, now, price, currency, quantity, unit,
                   valid_until, message, terms)

    return _apply(session, actor, quote_id, 'counter', mutate, _only_counterpart, relay)


def accept_quote(session: Session, actor, quote_id, relay=None) -> QuoteRequest:
    """
    Accept the offer currently on the table.

    Only the counterpart of whoever made the latest offer may accept it.
    """
    def mutate(quote, party, now):
        if quote.last_offer_by == party:
            raise ForbiddenError("You cannot accept your own offer")
        latest = session.query(QuoteOffer).filter(
            QuoteOffer.quote_request_id == quote.id
        ).order_by(QuoteOffer.created_at.desc()).first()
        if latest is not None:
            latest.is_accepted = True
        quote.closed_at = now
        quote.closed_by = actor.user_id

    return _apply(session, actor, quote_id, 'accept', mutate, _both_parties, relay)


def reject_quote(session: Session, actor, quote_id, reason=None, relay=None) -> QuoteRequest:
    """Either party ends the negotiation."""
    def mutate(quote, party, now):
        quote.closed_at = now
        quote.closed_by = actor.user_id
        quote.close_reason = reason

    return _apply(session, actor, quote_id, 'reject', mutate, _both_parties, relay)


def cancel_quote(session: Session, actor, quote_id, relay=None) -> QuoteRequest:
    """The requesting company withdraws a request nobody has answered yet."""
    def mutate(quote, party, now):
        quote.closed_at = now
        quote.closed_by = actor.user_id

    return _apply(session, actor, quote_id, 'cancel', mutate, _both_parties, relay)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _visible_query(session: Session, actor):
    query = session.query(QuoteRequest)
    if actor.is_super_admin:
        return query
    if actor.tenant_type == TenantType.COMPANY.value:
        return query.filter(QuoteRequest.company_id == actor.tenant_id)
    if actor.tenant_type in SELLER_TYPES:
        return query.filter(QuoteRequest.supplier_id == actor.tenant_id)
    raise ForbiddenError("Quote requests are only available to companies and suppliers")


def get_quote_request(session: Session, actor, quote_id) -> QuoteRequest:
    quote = session.get(QuoteRequest, quote_id)
    if quote is None:
        raise NotFoundError("Quote request not found")
    if not actor.is_super_admin and party_of(actor, quote) is None:
        raise ForbiddenError("You are not a party to this quote request")
    return quote


def list_quote_requests(session: Session, actor, status=None, product_id=None,
                        counterparty_id=None, now=None) -> List[QuoteRequest]:
    """
    Quote requests visible to the actor, newest first.

    The status filter matches the effective status, so ``expired`` finds
    lapsed requests whose stored status is still open.
    """
    now = now or utcnow()
    query = _visible_query(session, actor)
    if product_id is not None:
        query = query.filter(QuoteRequest.product_id == product_id)
    if counterparty_id is not None:
        if actor.tenant_type == TenantType.COMPANY.value:
            query = query.filter(QuoteRequest.supplier_id == counterparty_id)
        else:
            query = query.filter(QuoteRequest.company_id == counterparty_id)

    quotes = query.order_by(QuoteRequest.created_at.desc()).all()
    if status is not None:
        quotes = [q for q in quotes if q.effective_status(now) == status]
    return quotes


def get_quote_statistics(session: Session, actor, now=None) -> Dict[str, int]:
    """Count of visible quote requests per effective status."""
    now = now or utcnow()
    stats = {s.value: 0 for s in QuoteStatus}
    quotes = _visible_query(session, actor).all()
    for quote in quotes:
        stats[quote.effective_status(now)] += 1
    stats['total'] = len(quotes)
    return stats
