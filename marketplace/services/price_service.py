"""
Price service: resolves the price a company sees for a product and handles
default/private price writes.

Resolution order for a (product, company) pair:
    1. active private price whose effective window contains now
    2. active default price whose effective window contains now
    3. NoPriceAvailable ("price on request")
Ties inside a tier go to the latest effective_from, then latest created_at.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from marketplace.blueprints.metrics import price_resolutions_total
from marketplace.exceptions import (
    ValidationError, NotFoundError, ForbiddenError, NoPriceAvailable
)
from marketplace.models import (
    Product, Tenant, TenantType, TenantStatus, DefaultPrice, PrivatePrice,
    PriceAuditLog, PriceAction
)
from marketplace.services.event_service import PendingEvents, PRICE_UPDATED, tenant_scope
from marketplace.utils.formatters import fmt_id, fmt_money, fmt_dt
from marketplace.utils.time import utcnow, to_naive_utc
from marketplace.utils.validation import (
    validate_price_fields, calculate_price_from_discount, find_duplicates, to_decimal, DEFAULT_CURRENCY
)

logger = logging.getLogger(__name__)
PRICE_TYPE_PRIVATE = 'private'
PRICE_TYPE_DEFAULT = 'default'


class ResolvedPrice(NamedTuple):
    """Outcome of a successful price resolution."""
    price: Decimal
    currency: str
    price_type: str
    price_id: Any
    discount_percentage: Optional[Decimal] = None
    effective_from: Any = None
    effective_until: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'price': fmt_money(self.price),
            'currency': self.currency,
            'price_type': self.price_type,
            'price_id': fmt_id(self.price_id),
            'discount_percentage': fmt_money(self.discount_percentage),
            'effective_from': fmt_dt(self.effective_from),
            'effective_until': fmt_dt(self.effective_until),
        }


# ---------------------------------------------------------------------------
# Resolution (read-only)
# ---------------------------------------------------------------------------

def _effective_filter(model, now):
    return (
        model.is_active.is_(True),
        model.effective_from <= now,
        or_(model.effective_until.is_(None), model.effective_until >= now),
    )


def current_default_price(session: Session, product_id, now=None) -> Optional[DefaultPrice]:
    """Active default price row in effect at ``now``, if any."""
    now = now or utcnow()
    return session.query(DefaultPrice).filter(
        DefaultPrice.product_id == product_id,
        *_effective_filter(DefaultPrice, now)
    ).order_by(
        DefaultPrice.effective_from.desc(),
        DefaultPrice.created_at.desc()
    ).first()


def current_private_price(session: Session, product_id, company_id, now=None) -> Optional[PrivatePrice]:
    """Active private price row for (product, company) in effect at ``now``, if any."""
    now = now or utcnow()
    return session.query(PrivatePrice).filter(
        PrivatePrice.product_id == product_id,
        PrivatePrice.company_id == company_id,
        *_effective_filter(PrivatePrice, now)
    ).order_by(
        PrivatePrice.effective_from.desc(),
        PrivatePrice.created_at.desc()
    ).first()


def resolve_price(session: Session, product_id, company_id=None, now=None) -> ResolvedPrice:
    """
    Determine the applicable price for a product, optionally for a company.

    Raises:
        NotFoundError: product does not exist or is inactive
        NoPriceAvailable: neither a private nor a default price applies
    """
    now = to_naive_utc(now) if now is not None else utcnow()

    product = session.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")

    default = current_default_price(session, product_id, now)

    if company_id is not None:
        private = current_private_price(session, product_id, company_id, now)
        if private is not None:
            if private.price is not None:
                price_resolutions_total.labels(price_type=PRICE_TYPE_PRIVATE).inc()
                return ResolvedPrice(
                    price=private.price,
                    currency=private.currency,
                    price_type=PRICE_TYPE_PRIVATE,
                    price_id=private.id,
                    effective_from=private.effective_from,
                    effective_until=private.effective_until,
                )
            if default is not None:
                # Discount applies to the current default in its currency
                price_resolutions_total.labels(price_type=PRICE_TYPE_PRIVATE).inc()
                return ResolvedPrice(
                    price=calculate_price_from_discount(default.price, private.discount_percentage),
                    currency=default.currency,
                    price_type=PRICE_TYPE_PRIVATE,
                    price_id=private.id,
                    discount_percentage=private.discount_percentage,
                    effective_from=private.effective_from,
                    effective_until=private.effective_until,
                )

    if default is not None:
        price_resolutions_total.labels(price_type=PRICE_TYPE_DEFAULT).inc()
        return ResolvedPrice(
            price=default.price,
            currency=default.currency,
            price_type=PRICE_TYPE_DEFAULT,
            price_id=default.id,
            effective_from=default.effective_from,
            effective_until=default.effective_until,
        )

    price_resolutions_total.labels(price_type='none').inc()
    raise NoPriceAvailable(product_id)


def resolve_price_for_actor(session: Session, actor, product_id, company_id=None, now=None) -> ResolvedPrice:
    """
    Resolve the price the acting user is entitled to see.

    Company users always resolve for their own tenant. Super-admins may
    resolve on behalf of any company. Everybody else sees the default price.
    """
    if actor is not None and actor.tenant_type == TenantType.COMPANY.value:
        company_id = actor.tenant_id
    elif actor is None or not actor.is_super_admin:
        company_id = None
    return resolve_price(session, product_id, company_id, now)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _get_owned_product(session: Session, actor, product_id) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if not actor.is_super_admin and not actor.belongs_to(product.supplier_id):
        raise ForbiddenError("You can only manage prices of your own products")
    if not actor.can('create'):
        raise ForbiddenError("Your permissions do not allow editing prices")
    return product


def _get_company(session: Session, company_id) -> Tenant:
    company = session.get(Tenant, company_id) if company_id is not None else None
    if (
        company is None
        or company.type != TenantType.COMPANY.value
        or company.status != TenantStatus.ACTIVE.value
    ):
        raise NotFoundError("Company not found")
    return company


def _raise_if_invalid(errors: List[str]) -> None:
    if errors:
        raise ValidationError(errors[0], payload={'errors': errors})


def _normalize_window(effective_from, effective_until, now):
    effective_from = to_naive_utc(effective_from) if effective_from is not None else now
    effective_until = to_naive_utc(effective_until) if effective_until is not None else None
    return effective_from, effective_until


def _price_event_payload(row: PrivatePrice, action: str) -> Dict[str, Any]:
    return {
        'product_id': fmt_id(row.product_id),
        'company_id': fmt_id(row.company_id),
        'price_type': PRICE_TYPE_PRIVATE,
        'action': action,
        'price': fmt_money(row.price),
        'discount_percentage': fmt_money(row.discount_percentage),
        'currency': row.currency,
        'effective_from': fmt_dt(row.effective_from),
        'effective_until': fmt_dt(row.effective_until),
    }


def set_default_price(session: Session, actor, product_id, price, currency=None,
                      effective_from=None, effective_until=None) -> DefaultPrice:
    """
    Record a new default price for a product.

    An immediately effective price supersedes the rows currently in effect.
    A future-dated price leaves them in place until it takes over. Default
    price changes are not pushed to clients.
    """
    product = _get_owned_product(session, actor, product_id)
    currency = currency or DEFAULT_CURRENCY
    now = utcnow()
    effective_from, effective_until = _normalize_window(effective_from, effective_until, now)

    if price is None:
        raise ValidationError("Price is required")
    _raise_if_invalid(validate_price_fields(
        price=price, currency=currency,
        effective_from=effective_from, effective_until=effective_until,
        require_exactly_one=False
    ))

    try:
        previous = current_default_price(session, product.id, now)
        if effective_from <= now:
            session.query(DefaultPrice).filter(
                DefaultPrice.product_id == product.id,
                DefaultPrice.is_active.is_(True),
                DefaultPrice.effective_from <= now
            ).update({DefaultPrice.is_active: False}, synchronize_session='fetch')

        row = DefaultPrice(
            product_id=product.id,
            price=to_decimal(price),
            currency=currency,
            effective_from=effective_from,
            effective_until=effective_until,
            is_active=True,
            created_by=actor.user_id,
        )
        session.add(row)
        session.add(PriceAuditLog(
            product_id=product.id,
            price_type=PRICE_TYPE_DEFAULT,
            action=PriceAction.UPDATE.value if previous else PriceAction.CREATE.value,
            old_price=previous.price if previous else None,
            new_price=row.price,
            currency=currency,
            changed_by=actor.user_id,
        ))
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Default price set for product {product.id}: {row.price} {row.currency} by {actor.user_id}")
    return row


def _build_private_row(session: Session, actor, product: Product, entry: Dict[str, Any], now) -> PrivatePrice:
    """Validate one private-price entry and return an unsaved row."""
    company = _get_company(session, entry.get('company_id'))
    price = entry.get('price')
    discount = entry.get('discount_percentage')
    currency = entry.get('currency') or DEFAULT_CURRENCY
    effective_from, effective_until = _normalize_window(
        entry.get('effective_from'), entry.get('effective_until'), now
    )
    _raise_if_invalid(validate_price_fields(
        price=price, discount_percentage=discount, currency=currency,
        effective_from=effective_from, effective_until=effective_until
    ))
    return PrivatePrice(
        product_id=product.id,
        company_id=company.id,
        price=to_decimal(price),
        discount_percentage=to_decimal(discount),
        currency=currency,
        effective_from=effective_from,
        effective_until=effective_until,
        is_active=True,
        notes=entry.get('notes'),
        created_by=actor.user_id,
    )


def _supersede_private(session: Session, row: PrivatePrice, now) -> Optional[PrivatePrice]:
    """Deactivate rows in effect for the same pair when ``row`` starts now."""
    previous = current_private_price(session, row.product_id, row.company_id, now)
    if row.effective_from <= now:
        session.query(PrivatePrice).filter(
            PrivatePrice.product_id == row.product_id,
            PrivatePrice.company_id == row.company_id,
            PrivatePrice.is_active.is_(True),
            PrivatePrice.effective_from <= now
        ).update({PrivatePrice.is_active: False}, synchronize_session='fetch')
    return previous


def _audit_private(session: Session, actor, row: PrivatePrice, action: str, old_price=None) -> None:
    session.add(PriceAuditLog(
        product_id=row.product_id,
        price_type=PRICE_TYPE_PRIVATE,
        company_id=row.company_id,
        action=action,
        old_price=old_price,
        new_price=row.price,
        discount_percentage=row.discount_percentage,
        currency=row.currency,
        changed_by=actor.user_id,
    ))


def create_private_price(session: Session, actor, product_id, company_id, price=None,
                         discount_percentage=None, currency=None, effective_from=None,
                         effective_until=None, notes=None, relay=None) -> PrivatePrice:
    """Create a negotiated price for one company and notify that company."""
    rows = set_private_prices(session, actor, product_id, [{
        'company_id': company_id,
        'price': price,
        'discount_percentage': discount_percentage,
        'currency': currency,
        'effective_from': effective_from,
        'effective_until': effective_until,
        'notes': notes,
    }], relay=relay)
    return rows[0]


def set_private_prices(session: Session, actor, product_id, entries: List[Dict[str, Any]],
                       relay=None) -> List[PrivatePrice]:
    """
    Create private prices for several companies in one transaction.

    The whole batch is validated before anything is written; a company may
    appear only once per batch.
    """
    product = _get_owned_product(session, actor, product_id)
    if not entries:
        raise ValidationError("At least one private price is required")

    duplicates = find_duplicates(str(entry.get('company_id')) for entry in entries)
    if duplicates:
        raise ValidationError(
            "Duplicate company in private price list",
            payload={'duplicate_company_ids': duplicates}
        )

    now = utcnow()
    rows = [_build_private_row(session, actor, product, entry, now) for entry in entries]
    pending = PendingEvents()

    try:
        for row in rows:
            previous = _supersede_private(session, row, now)
            session.add(row)
            _audit_private(
                session, actor, row,
                PriceAction.UPDATE.value if previous else PriceAction.CREATE.value,
                old_price=previous.price if previous else None,
            )
        session.commit()
    except Exception:
        session.rollback()
        raise

    for row in rows:
        pending.add(PRICE_UPDATED, tenant_scope(row.company_id), _price_event_payload(row, 'created'))
        logger.info(f"Private price set for product {row.product_id} / company {row.company_id} by {actor.user_id}")
    pending.flush(relay)
    return rows


def _get_private_price(session: Session, actor, private_price_id) -> PrivatePrice:
    row = session.get(PrivatePrice, private_price_id)
    if row is None:
        raise NotFoundError("Private price not found")
    _get_owned_product(session, actor, row.product_id)
    return row


UPDATABLE_PRIVATE_FIELDS = (
    'price', 'discount_percentage', 'currency', 'effective_from', 'effective_until', 'notes', 'is_active'
)


def update_private_price(session: Session, actor, private_price_id, changes: Dict[str, Any],
                         relay=None) -> PrivatePrice:
    """
    Update a private price in place.

    Supplying a price clears the discount and vice versa; supplying both is
    rejected.
    """
    row = _get_private_price(session, actor, private_price_id)
    changes = {k: v for k, v in changes.items() if k in UPDATABLE_PRIVATE_FIELDS}

    if changes.get('price') is not None and changes.get('discount_percentage') is not None:
        raise ValidationError("Provide either a price or a discount percentage, not both")

    price = row.price
    discount = row.discount_percentage
    if changes.get('price') is not None:
        price, discount = changes['price'], None
    elif changes.get('discount_percentage') is not None:
        price, discount = None, changes['discount_percentage']

    currency = changes.get('currency') or row.currency
    effective_from = changes.get('effective_from', row.effective_from)
    effective_until = changes.get('effective_until', row.effective_until)
    effective_from = to_naive_utc(effective_from) if effective_from is not None else row.effective_from
    effective_until = to_naive_utc(effective_until) if effective_until is not None else None

    _raise_if_invalid(validate_price_fields(
        price=price, discount_percentage=discount, currency=currency,
        effective_from=effective_from, effective_until=effective_until
    ))

    old_price = row.price
    pending = PendingEvents()
    try:
        row.price = to_decimal(price)
        row.discount_percentage = to_decimal(discount)
        row.currency = currency
        row.effective_from = effective_from
        row.effective_until = effective_until
        if 'notes' in changes:
            row.notes = changes['notes']
        if 'is_active' in changes and changes['is_active'] is not None:
            row.is_active = bool(changes['is_active'])
        _audit_private(session, actor, row, PriceAction.UPDATE.value, old_price=old_price)
        session.commit()
    except Exception:
        session.rollback()
        raise

    pending.add(PRICE_UPDATED, tenant_scope(row.company_id), _price_event_payload(row, 'updated'))
    logger.info(f"Private price {row.id} updated by {actor.user_id}")
    pending.flush(relay)
    return row


def delete_private_price(session: Session, actor, private_price_id, relay=None) -> PrivatePrice:
    """Soft-delete a private price; the company falls back to the default price."""
    row = _get_private_price(session, actor, private_price_id)
    pending = PendingEvents()
    try:
        row.is_active = False
        _audit_private(session, actor, row, PriceAction.DELETE.value, old_price=row.price)
        session.commit()
    except Exception:
        session.rollback()
        raise

    pending.add(PRICE_UPDATED, tenant_scope(row.company_id), _price_event_payload(row, 'deleted'))
    logger.info(f"Private price {row.id} deactivated by {actor.user_id}")
    pending.flush(relay)
    return row


def list_private_prices(session: Session, actor, product_id, include_inactive=False) -> List[PrivatePrice]:
    """Private prices of a product, newest first (supplier view)."""
    product = session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if not actor.is_super_admin and not actor.belongs_to(product.supplier_id):
        raise ForbiddenError("You can only view private prices of your own products")

    query = session.query(PrivatePrice).filter(PrivatePrice.product_id == product.id)
    if not include_inactive:
        query = query.filter(PrivatePrice.is_active.is_(True))
    return query.order_by(PrivatePrice.effective_from.desc(), PrivatePrice.created_at.desc()).all()


def get_price_history(session: Session, actor, product_id, limit: int = 100) -> List[PriceAuditLog]:
    """Latest price audit entries for a product (owner or super-admin)."""
    product = session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if not actor.is_super_admin and not actor.belongs_to(product.supplier_id):
        raise ForbiddenError("You can only view the price history of your own products")

    return session.query(PriceAuditLog).filter(
        PriceAuditLog.product_id == product.id
    ).order_by(PriceAuditLog.created_at.desc()).limit(limit).all()
