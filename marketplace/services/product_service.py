"""Product catalog operations for supplier and service-provider tenants."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.database import conflict_from_integrity_error
from marketplace.exceptions import ValidationError, NotFoundError, ForbiddenError, ConflictError
from marketplace.models import (
    Product, ProductType, Category, ServiceCategory, Tenant, TenantStatus, DefaultPrice, PriceAuditLog,
    PriceAction, PrivatePrice, QuoteRequest, SELLER_TYPES
)
from marketplace.utils.time import utcnow
from marketplace.utils.validation import validate_product_fields, validate_price_fields, to_decimal, DEFAULT_CURRENCY

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    'sku', 'name', 'description', 'type', 'category_id', 'service_category_id',
    'unit', 'rate_per_hour', 'rate_type',
)


def _require_seller(actor, write=True) -> None:
    if actor.tenant_type not in SELLER_TYPES:
        raise ForbiddenError("Only suppliers and service providers manage products")
    if write and not actor.can('create'):
        raise ForbiddenError("Your permissions do not allow editing products")


def _raise_if_invalid(errors: List[str]) -> None:
    if errors:
        raise ValidationError(errors[0], payload={'errors': errors})


def _check_categories(session: Session, data: Dict[str, Any]) -> None:
    if data.get('category_id') is not None and session.get(Category, data['category_id']) is None:
        raise ValidationError("Category not found")
    if data.get('service_category_id') is not None and session.get(ServiceCategory, data['service_category_id']) is None:
        raise ValidationError("Service category not found")


def _check_sku_free(session: Session, supplier_id, sku, exclude_id=None) -> None:
    query = session.query(Product.id).filter(Product.supplier_id == supplier_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError(f"A product with SKU '{sku}' already exists")


def get_owned_product(session: Session, actor, product_id) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if not actor.is_super_admin and not actor.belongs_to(product.supplier_id):
        raise ForbiddenError("You can only manage your own products")
    return product


def create_product(session: Session, actor, data: Dict[str, Any]) -> Product:
    """
    Create a product or service for the actor's tenant.

    ``data`` may carry an initial ``default_price`` (with optional
    ``currency``), stored in the same transaction.
    """
    _require_seller(actor)
    data = dict(data)
    data.setdefault('type', ProductType.PRODUCT.value)
    _raise_if_invalid(validate_product_fields(data))

    initial_price = data.get('default_price')
    currency = data.get('currency') or DEFAULT_CURRENCY
    if initial_price is not None:
        _raise_if_invalid(validate_price_fields(price=initial_price, currency=currency,
                                                require_exactly_one=False))

    _check_categories(session, data)
    _check_sku_free(session, actor.tenant_id, data['sku'])

    try:
        product = Product(
            supplier_id=actor.tenant_id,
            sku=data['sku'],
            name=data['name'].strip(),
            description=data.get('description'),
            type=data['type'],
            category_id=data.get('category_id'),
            service_category_id=data.get('service_category_id'),
            unit=data['unit'].strip(),
            rate_per_hour=to_decimal(data.get('rate_per_hour')),
            rate_type=data.get('rate_type'),
            is_active=True,
        )
        session.add(product)
        session.flush()

        if initial_price is not None:
            price = DefaultPrice(
                product_id=product.id,
                price=to_decimal(initial_price),
                currency=currency,
                effective_from=utcnow(),
                is_active=True,
                created_by=actor.user_id,
            )
            session.add(price)
            session.add(PriceAuditLog(
                product_id=product.id,
                price_type='default',
                action=PriceAction.CREATE.value,
                new_price=price.price,
                currency=currency,
                changed_by=actor.user_id,
            ))
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise conflict_from_integrity_error(e, f"A product with SKU '{data['sku']}' already exists")
    except Exception:
        session.rollback()
        raise

    logger.info(f"Product created: {product.sku} ({product.id}) by {actor.user_id}")
    return product


def update_product(session: Session, actor, product_id, changes: Dict[str, Any]) -> Product:
    _require_seller(actor)
    product = get_owned_product(session, actor, product_id)
    changes = {k: v for k, v in changes.items() if k in PRODUCT_FIELDS}

    merged = {field: getattr(product, field) for field in PRODUCT_FIELDS}
    merged.update(changes)
    _raise_if_invalid(validate_product_fields(merged))
    _check_categories(session, changes)
    if 'sku' in changes and changes['sku'] != product.sku:
        _check_sku_free(session, product.supplier_id, changes['sku'], exclude_id=product.id)

    try:
        for field, value in changes.items():
            if field == 'rate_per_hour':
                value = to_decimal(value)
            elif field in ('name', 'unit') and isinstance(value, str):
                value = value.strip()
            setattr(product, field, value)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise conflict_from_integrity_error(e, f"A product with SKU '{merged['sku']}' already exists")
    except Exception:
        session.rollback()
        raise

    logger.info(f"Product updated: {product.id} by {actor.user_id}")
    return product


def delete_product(session: Session, actor, product_id) -> Product:
    """Soft delete: the product disappears from the catalog, history stays."""
    _require_seller(actor)
    product = get_owned_product(session, actor, product_id)
    try:
        product.is_active = False
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Product deactivated: {product.id} by {actor.user_id}")
    return product


def get_product(session: Session, product_id, include_inactive=False) -> Product:
    product = session.get(Product, product_id)
    if product is None or (not product.is_active and not include_inactive):
        raise NotFoundError("Product not found")
    return product


def list_supplier_products(session: Session, actor, include_inactive=False) -> List[Product]:
    _require_seller(actor, write=False)
    query = session.query(Product).filter(Product.supplier_id == actor.tenant_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.created_at.desc()).all()


def search_catalog(session: Session, search: Optional[str] = None, product_type=None, category_id=None,
                   service_category_id=None, supplier_id=None, page: int = 1, per_page: int = 20) -> Dict[str, Any]:
    """Active products from operational suppliers, paginated."""
    page = max(int(page or 1), 1)
    per_page = min(max(int(per_page or 20), 1), 100)

    query = session.query(Product).join(Tenant, Tenant.id == Product.supplier_id).filter(
        Product.is_active.is_(True),
        Tenant.status == TenantStatus.ACTIVE.value,
        Tenant.is_active.is_(True),
    )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
            Product.description.ilike(pattern),
        ))
    if product_type:
        query = query.filter(Product.type == product_type)
    if category_id is not None:
        # Main categories match their subcategories too
        child_ids = [row.id for row in session.query(Category.id).filter(Category.parent_id == category_id)]
        query = query.filter(Product.category_id.in_([category_id] + child_ids))
    if service_category_id is not None:
        child_ids = [row.id for row in session.query(ServiceCategory.id).filter(
            ServiceCategory.parent_id == service_category_id)]
        query = query.filter(Product.service_category_id.in_([service_category_id] + child_ids))
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)

    total = query.count()
    items = query.order_by(Product.name.asc()).offset((page - 1) * per_page).limit(per_page).all()
    return {
        'items': items,
        'total': total,
        'page': page,
        'per_page': per_page,
        'pages': (total + per_page - 1) // per_page,
    }


def get_supplier_statistics(session: Session, actor) -> Dict[str, Any]:
    _require_seller(actor, write=False)
    tenant_id = actor.tenant_id
    product_ids = session.query(Product.id).filter(Product.supplier_id == tenant_id)
    return {
        'products': {
            'total': session.query(func.count(Product.id)).filter(Product.supplier_id == tenant_id).scalar(),
            'active': session.query(func.count(Product.id)).filter(
                Product.supplier_id == tenant_id, Product.is_active.is_(True)).scalar(),
            'services': session.query(func.count(Product.id)).filter(
                Product.supplier_id == tenant_id, Product.type == ProductType.SERVICE.value).scalar(),
        },
        'private_prices': session.query(func.count(PrivatePrice.id)).filter(
            PrivatePrice.product_id.in_(product_ids), PrivatePrice.is_active.is_(True)).scalar(),
        'quote_requests': session.query(func.count(QuoteRequest.id)).filter(
            QuoteRequest.supplier_id == tenant_id).scalar(),
    }
