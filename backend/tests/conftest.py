"""
Pytest fixtures for bizdesk backend tests.

Provides test database setup, two-tenant fixtures, and test client.
"""

import pytest
from sqlalchemy import update

from bizdesk import create_app
from bizdesk.extensions import db
from bizdesk.models import Client, Enterprise, Product
from bizdesk.services import products_service, session_service
from bizdesk.services.auth_service import create_user
from bizdesk.services.invalidation_service import page_invalidated


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ALLOW_NEGATIVE_STOCK': True,
        'LOG_LEVEL': 'DEBUG',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def enterprise_a(db_session):
    """Create Enterprise A (first tenant)."""
    enterprise = Enterprise(name="Acme Papelaria", is_active=True)
    db_session.add(enterprise)
    db_session.commit()
    return enterprise


@pytest.fixture(scope='function')
def enterprise_b(db_session):
    """Create Enterprise B (second tenant)."""
    enterprise = Enterprise(name="Beta Doces", is_active=True)
    db_session.add(enterprise)
    db_session.commit()
    return enterprise


@pytest.fixture(scope='function')
def user_a(db_session, enterprise_a):
    return create_user("Ana", "ana@acme.com", TEST_PASSWORD, enterprise_id=enterprise_a.id)


@pytest.fixture(scope='function')
def user_b(db_session, enterprise_b):
    return create_user("Bruno", "bruno@beta.com", TEST_PASSWORD, enterprise_id=enterprise_b.id)


@pytest.fixture(scope='function')
def token_a(user_a):
    _, token = session_service.create_session(user_a.id)
    return token


@pytest.fixture(scope='function')
def token_b(user_b):
    _, token = session_service.create_session(user_b.id)
    return token


@pytest.fixture(scope='function')
def product_a(db_session, enterprise_a):
    """Published product in Enterprise A with 10 units (one 'estoque inicial' entry)."""
    return products_service.create_product(enterprise_a.id, {
        "name": "Caderno",
        "category": "Papelaria",
        "sale_price_cents": 1500,
        "purchase_price_cents": 800,
        "publish_for_sale": True,
        "quantity_in_stock": 10,
    })


@pytest.fixture(scope='function')
def product_a2(db_session, enterprise_a):
    return products_service.create_product(enterprise_a.id, {
        "name": "Caneta Azul",
        "category": "Papelaria",
        "sale_price_cents": 300,
        "purchase_price_cents": 100,
        "publish_for_sale": True,
        "quantity_in_stock": 20,
    })


@pytest.fixture(scope='function')
def product_b(db_session, enterprise_b):
    return products_service.create_product(enterprise_b.id, {
        "name": "Brigadeiro",
        "category": "Doces",
        "sale_price_cents": 250,
        "purchase_price_cents": 90,
        "publish_for_sale": True,
        "quantity_in_stock": 50,
    })


@pytest.fixture(scope='function')
def client_a(db_session, enterprise_a):
    customer = Client(enterprise_id=enterprise_a.id, name="Carla", phone_number="11999990000")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def client_b(db_session, enterprise_b):
    customer = Client(enterprise_id=enterprise_b.id, name="Diego", phone_number="21988887777")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def invalidations():
    """Collect (enterprise_id, page) pairs emitted during the test."""
    received = []

    def receiver(sender, page, **kwargs):
        received.append((sender, page))

    with page_invalidated.connected_to(receiver):
        yield received


def force_stock(product_id: int, quantity: int) -> None:
    """Corrupt the stock projection without touching the ledger."""
    db.session.execute(
        update(Product).where(Product.id == product_id).values(quantity_in_stock=quantity),
        execution_options={"synchronize_session": False},
    )
    db.session.commit()
    db.session.expire_all()


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
