"""
Supplier directory: operational supplier and service-provider tenants.

Pending, rejected and switched-off tenants never appear here.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from marketplace.exceptions import NotFoundError, ValidationError
from marketplace.models import Product, Tenant, TenantStatus, SELLER_TYPES
from marketplace.services import product_service
from marketplace.utils.formatters import fmt_id


def _directory_query(session: Session):
    return session.query(Tenant).filter(
        Tenant.type.in_(SELLER_TYPES),
        Tenant.status == TenantStatus.ACTIVE.value,
        Tenant.is_active.is_(True),
    )


def _active_product_counts(session: Session, tenant_ids) -> Dict[Any, int]:
    if not tenant_ids:
        return {}
    rows = session.query(Product.supplier_id, func.count(Product.id)).filter(
        Product.supplier_id.in_(tenant_ids),
        Product.is_active.is_(True),
    ).group_by(Product.supplier_id).all()
    return {supplier_id: count for supplier_id, count in rows}


def _entry(tenant: Tenant, product_count: int) -> Dict[str, Any]:
    return {
        'id': fmt_id(tenant.id),
        'name': tenant.name,
        'type': tenant.type,
        'email': tenant.email,
        'phone': tenant.phone,
        'address': tenant.address,
        'product_count': product_count,
    }


def list_suppliers(session: Session, tenant_type: Optional[str] = None,
                   search: Optional[str] = None) -> List[Dict[str, Any]]:
    """Operational sellers ordered by name, each with its active product count."""
    if tenant_type is not None and tenant_type not in SELLER_TYPES:
        raise ValidationError(f"Type must be one of: {', '.join(SELLER_TYPES)}")

    query = _directory_query(session)
    if tenant_type:
        query = query.filter(Tenant.type == tenant_type)
    if search:
        query = query.filter(Tenant.name.ilike(f"%{search.strip()}%"))
    tenants = query.order_by(Tenant.name.asc()).all()

    counts = _active_product_counts(session, [tenant.id for tenant in tenants])
    return [_entry(tenant, counts.get(tenant.id, 0)) for tenant in tenants]


def get_operational_supplier(session: Session, supplier_id) -> Tenant:
    supplier = _directory_query(session).filter(Tenant.id == supplier_id).first()
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return supplier


def get_supplier(session: Session, supplier_id) -> Dict[str, Any]:
    supplier = get_operational_supplier(session, supplier_id)
    counts = _active_product_counts(session, [supplier.id])
    return _entry(supplier, counts.get(supplier.id, 0))


def list_supplier_catalog(session: Session, supplier_id, search: Optional[str] = None, category_id=None,
                          service_category_id=None, page: int = 1, per_page: int = 20) -> Dict[str, Any]:
    """Active products of one operational seller, paginated like the catalog search."""
    supplier = get_operational_supplier(session, supplier_id)
    result = product_service.search_catalog(
        session,
        search=search,
        category_id=category_id,
        service_category_id=service_category_id,
        supplier_id=supplier.id,
        page=page,
        per_page=per_page,
    )
    counts = _active_product_counts(session, [supplier.id])
    result['supplier'] = _entry(supplier, counts.get(supplier.id, 0))
    return result
