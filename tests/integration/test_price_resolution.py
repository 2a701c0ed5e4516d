"""Integration tests for price resolution and price writes."""
from datetime import timedelta
from decimal import Decimal

import pytest

from marketplace.exceptions import (
    NoPriceAvailable, NotFoundError, ForbiddenError, ValidationError
)
from marketplace.models import PrivatePrice, DefaultPrice, PriceAuditLog, TenantType, TenantStatus
from marketplace.services import price_service
from marketplace.services.event_service import PRICE_UPDATED, tenant_scope
from marketplace.utils.time import utcnow


class TestResolvePrice:
    """Private price beats default price; otherwise the default applies."""

    def test_default_price_without_private_price(self, session, product, company):
        """A company with no private price sees the default price."""
        resolved = price_service.resolve_price(session, product.id, company.id)

        assert resolved.price == Decimal('25.99')
        assert resolved.currency == 'USD'
        assert resolved.price_type == 'default'

    def test_private_price_overrides_default(self, session, product, company, as_actor, supplier_admin):
        """An active private price effective today wins over the default."""
        price_service.create_private_price(
            session, as_actor(supplier_admin), product.id, company.id, price='22.50', currency='USD'
        )

        resolved = price_service.resolve_price(session, product.id, company.id)

        assert resolved.price == Decimal('22.50')
        assert resolved.currency == 'USD'
        assert resolved.price_type == 'private'

    def test_private_price_is_only_for_its_company(self, session, product, company, other_company,
                                                   as_actor, supplier_admin):
        price_service.create_private_price(
            session, as_actor(supplier_admin), product.id, company.id, price='22.50'
        )

        resolved = price_service.resolve_price(session, product.id, other_company.id)

        assert resolved.price == Decimal('25.99')
        assert resolved.price_type == 'default'

    def test_discount_applies_to_current_default(self, session, product, company, as_actor, supplier_admin):
        price_service.create_private_price(
            session, as_actor(supplier_admin), product.id, company.id, discount_percentage='10'
        )

        resolved = price_service.resolve_price(session, product.id, company.id)

        assert resolved.price == Decimal('23.391')
        assert resolved.to_dict()['price'] == '23.39'
        assert resolved.price_type == 'private'
        assert resolved.discount_percentage == Decimal('10')

    def test_discount_without_default_is_price_on_request(self, session, make_product, supplier, company,
                                                          as_actor, supplier_admin):
        product = make_product(supplier)
        price_service.create_private_price(
            session, as_actor(supplier_admin), product.id, company.id, discount_percentage='10'
        )

        with pytest.raises(NoPriceAvailable):
            price_service.resolve_price(session, product.id, company.id)

    def test_no_price_available(self, session, make_product, supplier):
        product = make_product(supplier)

        with pytest.raises(NoPriceAvailable) as exc:
            price_service.resolve_price(session, product.id)
        assert exc.value.status_code == 200

    def test_expired_private_price_is_ignored(self, session, product, company, supplier_admin):
        now = utcnow()
        session.add(PrivatePrice(
            product_id=product.id,
            company_id=company.id,
            price=Decimal('10.00'),
            currency='USD',
            effective_from=now - timedelta(days=10),
            effective_until=now - timedelta(days=1),
            is_active=True,
            created_by=supplier_admin.id,
        ))
        session.commit()

        resolved = price_service.resolve_price(session, product.id, company.id)

        assert resolved.price_type == 'default'

    def test_future_private_price_is_not_yet_effective(self, session, product, company, as_actor, supplier_admin):
        price_service.create_private_price(
            session, as_actor(supplier_admin), product.id, company.id, price='20.00',
            effective_from=utcnow() + timedelta(days=3)
        )

        assert price_service.resolve_price(session, product.id, company.id).price_type == 'default'
        later = utcnow() + timedelta(days=4)
        assert price_service.resolve_price(session, product.id, company.id, now=later).price == Decimal('20.00')

    def test_inactive_product_is_not_found(self, session, product):
        product.is_active = False
        session.commit()

        with pytest.raises(NotFoundError):
            price_service.resolve_price(session, product.id)

    def test_actor_resolution_uses_own_company(self, session, product, company, other_company,
                                               as_actor, supplier_admin, company_admin):
        price_service.create_private_price(
            session, as_actor(supplier_admin), product.id, company.id, price='22.50'
        )

        # A company cannot peek at another company's price by passing its id
        resolved = price_service.resolve_price_for_actor(
            session, as_actor(company_admin), product.id, company_id=other_company.id
        )
        assert resolved.price == Decimal('22.50')

        anonymous = price_service.resolve_price_for_actor(session, None, product.id, company_id=company.id)
        assert anonymous.price_type == 'default'


class TestOverlappingRows:
    """Several active rows in effect: latest effective_from wins, then latest created_at."""

    @pytest.fixture
    def now(self):
        return utcnow()

    @pytest.fixture
    def only_inserted_defaults(self, session, product):
        session.query(DefaultPrice).update({'is_active': False})
        session.commit()

    def _private(self, session, product, company, price, effective_from, created_at):
        row = PrivatePrice(product_id=product.id, company_id=company.id, price=Decimal(price),
                           currency='USD', effective_from=effective_from, created_at=created_at)
        session.add(row)
        session.commit()
        return row

    def _default(self, session, product, price, effective_from, created_at):
        row = DefaultPrice(product_id=product.id, price=Decimal(price), currency='USD',
                           effective_from=effective_from, created_at=created_at)
        session.add(row)
        session.commit()
        return row

    def test_private_latest_effective_from_wins(self, session, product, company, now):
        self._private(session, product, company, '21.00', now - timedelta(days=1), now - timedelta(hours=1))
        newer = self._private(session, product, company, '20.00', now - timedelta(hours=2),
                              now - timedelta(days=2))

        resolved = price_service.resolve_price(session, product.id, company.id, now=now)

        assert resolved.price_id == newer.id
        assert resolved.price == Decimal('20.00')

    def test_private_tie_broken_by_created_at(self, session, product, company, now):
        starts = now - timedelta(days=1)
        self._private(session, product, company, '21.00', starts, now - timedelta(hours=5))
        latest = self._private(session, product, company, '19.50', starts, now - timedelta(hours=1))

        resolved = price_service.resolve_price(session, product.id, company.id, now=now)

        assert resolved.price_id == latest.id
        assert resolved.price_type == 'private'

    def test_default_latest_effective_from_wins(self, session, product, only_inserted_defaults, now):
        self._default(session, product, '30.00', now - timedelta(days=1), now - timedelta(hours=1))
        newer = self._default(session, product, '28.00', now - timedelta(hours=2), now - timedelta(days=2))

        resolved = price_service.resolve_price(session, product.id, now=now)

        assert resolved.price_id == newer.id
        assert resolved.price == Decimal('28.00')

    def test_default_tie_broken_by_created_at(self, session, product, only_inserted_defaults, now):
        starts = now - timedelta(days=1)
        self._default(session, product, '30.00', starts, now - timedelta(hours=5))
        latest = self._default(session, product, '29.00', starts, now - timedelta(hours=1))

        resolved = price_service.resolve_price(session, product.id, now=now)

        assert resolved.price_id == latest.id
        assert resolved.price_type == 'default'


class TestDefaultPrice:

    def test_new_default_supersedes_current(self, session, product, as_actor, supplier_admin):
        price_service.set_default_price(session, as_actor(supplier_admin), product.id, '27.50')

        active = session.query(DefaultPrice).filter(
            DefaultPrice.product_id == product.id, DefaultPrice.is_active.is_(True)
        ).all()
        assert len(active) == 1
        assert price_service.resolve_price(session, product.id).price == Decimal('27.50')

    def test_future_default_keeps_current_in_place(self, session, product, as_actor, supplier_admin):
        price_service.set_default_price(
            session, as_actor(supplier_admin), product.id, '30.00',
            effective_from=utcnow() + timedelta(days=7)
        )

        assert price_service.resolve_price(session, product.id).price == Decimal('25.99')

    def test_writes_audit_entry(self, session, product, as_actor, supplier_admin):
        price_service.set_default_price(session, as_actor(supplier_admin), product.id, '27.50')

        entry = session.query(PriceAuditLog).filter(PriceAuditLog.product_id == product.id).one()
        assert entry.action == 'update'
        assert entry.old_price == Decimal('25.99')
        assert entry.new_price == Decimal('27.50')

    def test_default_price_change_sends_no_event(self, session, product, as_actor, supplier_admin, relay):
        price_service.set_default_price(session, as_actor(supplier_admin), product.id, '27.50')
        assert relay.events == []

    @pytest.mark.parametrize('price', ['0', '-5', '10.123', None])
    def test_invalid_price(self, session, product, as_actor, supplier_admin, price):
        with pytest.raises(ValidationError):
            price_service.set_default_price(session, as_actor(supplier_admin), product.id, price)

    def test_other_supplier_cannot_set_price(self, session, product, make_tenant, make_user, as_actor):
        rival = make_user(make_tenant(TenantType.SUPPLIER.value))

        with pytest.raises(ForbiddenError):
            price_service.set_default_price(session, as_actor(rival), product.id, '1.00')

    def test_view_only_staff_cannot_set_price(self, session, product, supplier, make_user, as_actor):
        staff = make_user(supplier, level='view')

        with pytest.raises(ForbiddenError):
            price_service.set_default_price(session, as_actor(staff), product.id, '1.00')


class TestPrivatePrices:

    def test_price_and_discount_together_rejected(self, session, product, company, as_actor, supplier_admin):
        with pytest.raises(ValidationError):
            price_service.create_private_price(
                session, as_actor(supplier_admin), product.id, company.id,
                price='20.00', discount_percentage='5'
            )

    def test_company_must_be_active_company(self, session, product, supplier, make_tenant, as_actor, supplier_admin):
        pending = make_tenant(TenantType.COMPANY.value, status=TenantStatus.PENDING.value)

        with pytest.raises(NotFoundError):
            price_service.create_private_price(
                session, as_actor(supplier_admin), product.id, pending.id, price='20.00'
            )
        with pytest.raises(NotFoundError):
            price_service.create_private_price(
                session, as_actor(supplier_admin), product.id, supplier.id, price='20.00'
            )

    def test_bulk_rejects_duplicate_companies(self, session, product, company, as_actor, supplier_admin):
        entries = [
            {'company_id': company.id, 'price': '20.00'},
            {'company_id': company.id, 'price': '19.00'},
        ]

        with pytest.raises(ValidationError) as exc:
            price_service.set_private_prices(session, as_actor(supplier_admin), product.id, entries)
        assert exc.value.payload['duplicate_company_ids'] == [str(company.id)]
        assert session.query(PrivatePrice).count() == 0

    def test_bulk_is_all_or_nothing(self, session, product, company, other_company, as_actor, supplier_admin):
        entries = [
            {'company_id': company.id, 'price': '20.00'},
            {'company_id': other_company.id, 'price': '-1'},
        ]

        with pytest.raises(ValidationError):
            price_service.set_private_prices(session, as_actor(supplier_admin), product.id, entries)
        assert session.query(PrivatePrice).count() == 0

    def test_bulk_notifies_each_company(self, session, product, company, other_company, as_actor,
                                        supplier_admin, relay):
        entries = [
            {'company_id': company.id, 'price': '20.00'},
            {'company_id': other_company.id, 'discount_percentage': '5'},
        ]

        rows = price_service.set_private_prices(session, as_actor(supplier_admin), product.id, entries)

        assert len(rows) == 2
        scopes = {event.scope for event in relay.named(PRICE_UPDATED)}
        assert scopes == {tenant_scope(company.id), tenant_scope(other_company.id)}

    def test_new_private_price_supersedes_previous(self, session, product, company, as_actor, supplier_admin):
        actor = as_actor(supplier_admin)
        price_service.create_private_price(session, actor, product.id, company.id, price='22.50')
        price_service.create_private_price(session, actor, product.id, company.id, price='21.00')

        active = session.query(PrivatePrice).filter(PrivatePrice.is_active.is_(True)).all()
        assert len(active) == 1
        assert price_service.resolve_price(session, product.id, company.id).price == Decimal('21.00')

    def test_update_switches_price_to_discount(self, session, product, company, as_actor, supplier_admin, relay):
        actor = as_actor(supplier_admin)
        row = price_service.create_private_price(session, actor, product.id, company.id, price='22.50')

        updated = price_service.update_private_price(session, actor, row.id, {'discount_percentage': '20'})

        assert updated.price is None
        assert updated.discount_percentage == Decimal('20')
        assert price_service.resolve_price(session, product.id, company.id).to_dict()['price'] == '20.79'
        assert [event.payload['action'] for event in relay.named(PRICE_UPDATED)] == ['created', 'updated']

    def test_delete_falls_back_to_default(self, session, product, company, as_actor, supplier_admin, relay):
        actor = as_actor(supplier_admin)
        row = price_service.create_private_price(session, actor, product.id, company.id, price='22.50')

        price_service.delete_private_price(session, actor, row.id)

        assert price_service.resolve_price(session, product.id, company.id).price_type == 'default'
        assert relay.named(PRICE_UPDATED)[-1].payload['action'] == 'deleted'

    def test_list_and_history_are_owner_only(self, session, product, company, company_admin, as_actor, supplier_admin):
        actor = as_actor(supplier_admin)
        price_service.create_private_price(session, actor, product.id, company.id, price='22.50')

        assert len(price_service.list_private_prices(session, actor, product.id)) == 1
        history = price_service.get_price_history(session, actor, product.id)
        assert [entry.price_type for entry in history] == ['private']

        with pytest.raises(ForbiddenError):
            price_service.list_private_prices(session, as_actor(company_admin), product.id)
        with pytest.raises(ForbiddenError):
            price_service.get_price_history(session, as_actor(company_admin), product.id)
