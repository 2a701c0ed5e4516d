import pytest
import uuid
from decimal import Decimal

from marketplace import create_app
from marketplace import database
from marketplace.actor import Actor
from marketplace.models import (
    Tenant, TenantType, TenantStatus, User, UserRole, UserStatus, Product, DefaultPrice,
    Category, ServiceCategory, admin_role_for, staff_role_for, permissions_for_level
)
from marketplace.services.event_service import set_event_relay
from marketplace.utils.time import utcnow


class RecordingRelay:
    """Event relay double that keeps every published event in memory."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)
        return True

    def is_available(self):
        return True

    def named(self, name):
        return [event for event in self.events if event.name == name]

    def for_scope(self, scope):
        return [event for event in self.events if event.scope == scope]


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite by default)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(autouse=True)
def _schema(app):
    """Fresh tables for every test."""
    database.create_schema()
    yield
    database.get_session().remove()
    database.drop_schema()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    session = database.get_session()
    yield session
    session.rollback()


@pytest.fixture(autouse=True)
def relay():
    """Capture events instead of publishing them."""
    recording = RecordingRelay()
    set_event_relay(recording)
    yield recording
    set_event_relay(None)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture(scope='function')
def make_tenant(session):
    def _make(tenant_type=TenantType.SUPPLIER.value, status=TenantStatus.ACTIVE.value,
              is_active=None, name=None):
        suffix = str(uuid.uuid4())[:8]
        tenant = Tenant(
            name=name or f'{tenant_type.title()} {suffix}',
            type=tenant_type,
            email=f'{tenant_type}-{suffix}@test.com',
            status=status,
            is_active=(status == TenantStatus.ACTIVE.value) if is_active is None else is_active,
            approved_at=utcnow() if status == TenantStatus.ACTIVE.value else None,
        )
        session.add(tenant)
        session.commit()
        return tenant
    return _make


@pytest.fixture(scope='function')
def make_user(session):
    def _make(tenant=None, role=None, level='admin', status=UserStatus.ACTIVE.value,
              is_active=None, password='password123'):
        suffix = str(uuid.uuid4())[:8]
        if role is None:
            if tenant is None:
                role = UserRole.CUSTOMER.value
            elif level == 'admin':
                role = admin_role_for(tenant.type)
            else:
                role = staff_role_for(tenant.type)
        user = User(
            email=f'user-{suffix}@test.com',
            first_name='Test',
            last_name=suffix,
            role=role,
            tenant_id=tenant.id if tenant is not None else None,
            status=status,
            is_active=(status == UserStatus.ACTIVE.value) if is_active is None else is_active,
            permissions=permissions_for_level(level),
        )
        user.set_password(password)
        session.add(user)
        session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def make_product(session):
    def _make(supplier, sku=None, name='Portland Cement 50kg', unit='bag', product_type='product',
              default_price=None, currency='USD', **fields):
        product = Product(
            supplier_id=supplier.id,
            sku=sku or f'SKU-{str(uuid.uuid4())[:8]}',
            name=name,
            type=product_type,
            unit=unit,
            is_active=True,
            **fields
        )
        session.add(product)
        session.flush()
        if default_price is not None:
            session.add(DefaultPrice(
                product_id=product.id,
                price=Decimal(str(default_price)),
                currency=currency,
                effective_from=utcnow(),
                is_active=True,
            ))
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def as_actor():
    """Build the explicit actor context services expect."""
    return Actor.from_user


# ---------------------------------------------------------------------------
# Common parties
# ---------------------------------------------------------------------------

@pytest.fixture(scope='function')
def super_admin(make_user):
    return make_user(role=UserRole.SUPER_ADMIN.value)


@pytest.fixture(scope='function')
def supplier(make_tenant):
    return make_tenant(TenantType.SUPPLIER.value, name='Acme Aggregates')


@pytest.fixture(scope='function')
def supplier_admin(make_user, supplier):
    return make_user(supplier)


@pytest.fixture(scope='function')
def company(make_tenant):
    return make_tenant(TenantType.COMPANY.value, name='BuildCo')


@pytest.fixture(scope='function')
def company_admin(make_user, company):
    return make_user(company)


@pytest.fixture(scope='function')
def other_company(make_tenant):
    return make_tenant(TenantType.COMPANY.value, name='OtherCo')


@pytest.fixture(scope='function')
def product(make_product, supplier):
    """Product with a 25.99 USD default price."""
    return make_product(supplier, sku='CEM-001', default_price='25.99')


@pytest.fixture(scope='function')
def category(session):
    category = Category(name='Cement & Concrete', display_order=1, is_active=True)
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def service_category(session):
    category = ServiceCategory(name='Equipment Rental', display_order=1, is_active=True)
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def login_as(client):
    """Put a user id in the test client's session cookie (accepts a user or its id)."""
    def _login(user):
        user_id = user if isinstance(user, str) else str(user.id)
        with client.session_transaction() as sess:
            sess['user_id'] = user_id
        return client
    return _login
