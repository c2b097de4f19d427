import pytest
from decimal import Decimal

from redis.exceptions import ConnectionError as RedisConnectionError

from config import TestConfig
from storefront import create_app
from storefront.database import get_session, create_all, drop_all
from storefront.services.client_storage import ClientStorage, get_client_storage
from storefront.models import Product, ProductSize, Order


class InMemoryRedis:
    """Dict-backed stand-in for the few Redis commands client storage uses."""

    def __init__(self):
        self.data = {}

    def ping(self):
        return True

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        return True

    def setex(self, key, ttl, value):
        self.data[key] = value
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


class UnreachableRedis:
    """Every command fails the way redis-py does when the server is down."""

    def _fail(self, *args, **kwargs):
        raise RedisConnectionError('Connection refused')

    ping = get = set = setex = delete = _fail


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    return create_app(TestConfig)


@pytest.fixture(scope='function')
def session(app):
    """Database session on a fresh schema."""
    create_all()
    session = get_session()
    yield session
    session.rollback()
    session.remove()
    drop_all()


@pytest.fixture(scope='function')
def redis_double():
    return InMemoryRedis()


@pytest.fixture(scope='function')
def storage(redis_double):
    """Client storage backed by the in-memory Redis double."""
    return ClientStorage(client=redis_double)


@pytest.fixture(scope='function')
def broken_storage():
    """Client storage whose Redis is unreachable."""
    return ClientStorage(client=UnreachableRedis())


@pytest.fixture(scope='function')
def client(app, session, redis_double):
    """Test client with the app's client storage pointed at the Redis double."""
    app_storage = get_client_storage()
    app_storage.attach(redis_double)
    yield app.test_client()
    app_storage.attach(None)


@pytest.fixture(scope='function')
def make_product(session):
    """Factory: make_product(name, stock=0, price='10.00') -> Product."""
    counter = {'n': 0}

    def _make(name='Gauze Pads', stock=0, price='10.00'):
        counter['n'] += 1
        product = Product(
            name=name,
            sku=f'SKU-{counter["n"]:04d}',
            category='supplies',
            price=Decimal(price),
            current_stock=stock
        )
        session.add(product)
        session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_size(session):
    """Factory: make_size(product, size_value, stock=0, price='5.00') -> ProductSize."""

    def _make(product, size_value='100', stock=0, price='5.00', size_unit='ct', sequence=0):
        size = ProductSize(
            product_id=product.id,
            size_value=size_value,
            size_unit=size_unit,
            stock=stock,
            price=Decimal(price),
            sequence=sequence
        )
        session.add(size)
        session.commit()
        return size

    return _make


@pytest.fixture(scope='function')
def make_order(session):
    """Factory: make_order(total, payment_status='pending') -> Order."""
    counter = {'n': 0}

    def _make(total='100.00', payment_status='pending', profile_id='profile-1'):
        counter['n'] += 1
        order = Order(
            order_number=f'ORD-TEST-{counter["n"]:04d}',
            profile_id=profile_id,
            total_amount=Decimal(total),
            payment_status=payment_status
        )
        session.add(order)
        session.commit()
        return order

    return _make
