"""Integration tests for supplier product management and catalog search."""
import uuid
from decimal import Decimal

import pytest

from marketplace.exceptions import ValidationError, ConflictError, ForbiddenError, NotFoundError
from marketplace.models import Category, DefaultPrice, PriceAuditLog, TenantType
from marketplace.services import product_service


@pytest.fixture
def seller(as_actor, supplier_admin):
    return as_actor(supplier_admin)


def _data(**overrides):
    data = {'sku': 'GRV-20', 'name': 'Gravel 20mm', 'unit': 'ton', 'type': 'product'}
    data.update(overrides)
    return data


class TestCreateProduct:

    def test_create_with_initial_price(self, session, seller, supplier, category):
        product = product_service.create_product(
            session, seller, _data(category_id=category.id, default_price='42.00')
        )

        assert product.supplier_id == supplier.id
        assert product.category_id == category.id
        price = session.query(DefaultPrice).filter(DefaultPrice.product_id == product.id).one()
        assert price.price == Decimal('42.00')
        assert session.query(PriceAuditLog).count() == 1

    def test_both_categories_rejected(self, session, seller, category, service_category):
        """A product may not carry a category and a service category at once."""
        with pytest.raises(ValidationError) as exc:
            product_service.create_product(
                session, seller,
                _data(category_id=category.id, service_category_id=service_category.id)
            )
        assert 'both a category and a service category' in exc.value.message

    def test_service_takes_service_category(self, session, seller, category, service_category):
        with pytest.raises(ValidationError):
            product_service.create_product(session, seller, _data(type='service', category_id=category.id))

        service = product_service.create_product(
            session, seller,
            _data(sku='EXC-01', name='Excavator rental', unit='hour', type='service',
                  service_category_id=service_category.id, rate_per_hour='85.00', rate_type='per_hour')
        )
        assert service.rate_per_hour == Decimal('85.00')

    def test_duplicate_sku_per_supplier(self, session, seller, make_tenant, make_user, as_actor):
        product_service.create_product(session, seller, _data())

        with pytest.raises(ConflictError):
            product_service.create_product(session, seller, _data(name='Other'))

        other_supplier = as_actor(make_user(make_tenant(TenantType.SUPPLIER.value)))
        assert product_service.create_product(session, other_supplier, _data()).sku == 'GRV-20'

    def test_unknown_category(self, session, seller):
        with pytest.raises(ValidationError):
            product_service.create_product(session, seller, _data(category_id=uuid.uuid4()))

    def test_companies_cannot_create_products(self, session, as_actor, company_admin):
        with pytest.raises(ForbiddenError):
            product_service.create_product(session, as_actor(company_admin), _data())


class TestUpdateProduct:

    def test_update_validates_merged_fields(self, session, seller, product, category, service_category):
        product_service.update_product(session, seller, product.id, {'category_id': category.id})

        with pytest.raises(ValidationError):
            product_service.update_product(
                session, seller, product.id, {'service_category_id': service_category.id}
            )

    def test_update_other_supplier_product(self, session, product, make_tenant, make_user, as_actor):
        rival = as_actor(make_user(make_tenant(TenantType.SUPPLIER.value)))

        with pytest.raises(ForbiddenError):
            product_service.update_product(session, rival, product.id, {'name': 'Hijacked'})

    def test_soft_delete_hides_from_catalog(self, session, seller, product):
        product_service.delete_product(session, seller, product.id)

        with pytest.raises(NotFoundError):
            product_service.get_product(session, product.id)
        assert product_service.search_catalog(session)['total'] == 0
        assert len(product_service.list_supplier_products(session, seller, include_inactive=True)) == 1


class TestCatalogSearch:

    def test_search_by_text_and_category(self, session, make_product, supplier, category):
        child = Category(name='Portland Cement', parent_id=category.id, display_order=1, is_active=True)
        session.add(child)
        session.commit()
        make_product(supplier, sku='CEM-001', name='Portland Cement 50kg', category_id=child.id)
        make_product(supplier, sku='SND-001', name='River Sand', unit='m3')

        assert product_service.search_catalog(session, search='cement')['total'] == 1
        # Main category matches products in its subcategories
        assert product_service.search_catalog(session, category_id=category.id)['total'] == 1
        assert product_service.search_catalog(session)['total'] == 2

    def test_hides_products_of_inactive_suppliers(self, session, make_product, supplier):
        make_product(supplier)
        supplier.is_active = False
        session.commit()

        assert product_service.search_catalog(session)['items'] == []

    def test_pagination(self, session, make_product, supplier):
        for i in range(5):
            make_product(supplier, name=f'Brick {i}')

        result = product_service.search_catalog(session, page=2, per_page=2)
        assert result['total'] == 5
        assert result['pages'] == 3
        assert [p.name for p in result['items']] == ['Brick 2', 'Brick 3']

    def test_supplier_statistics(self, session, seller, product, make_product, supplier):
        make_product(supplier, product_type='service', name='Crane hire', unit='hour')

        stats = product_service.get_supplier_statistics(session, seller)
        assert stats['products'] == {'total': 2, 'active': 2, 'services': 1}
