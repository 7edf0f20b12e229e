"""
Pytest fixtures for PharmaPOS backend tests.

Provides test database setup, one user per role, auth headers and test client.
"""

import pytest
from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.models import Product
from pharmapos.permissions import Role
from pharmapos.services import auth_service

TEST_PASSWORD = "secret1"


def make_config(database_uri: str) -> dict:
    return {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': database_uri,
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # Keep bcrypt fast in tests
        'BCRYPT_ROUNDS': 4,
    }


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(make_config('sqlite:///:memory:'))

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


def create_user_with_role(username: str, role: Role | None, display_name: str | None = None):
    """Create a user directly; role=None leaves the user without a role record."""
    if role is None:
        user = auth_service.build_user(display_name or username, username, TEST_PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return auth_service.create_user(
        display_name=display_name or username,
        username=username,
        password=TEST_PASSWORD,
        role=role,
        created_by_user_id=None,
    )


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user_with_role("admin", Role.ADMINISTRATOR, "Ana Silva")


@pytest.fixture(scope='function')
def pharmacist_user(db_session):
    return create_user_with_role("farmaceutico", Role.FARMACEUTICO, "Bruno Costa")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return create_user_with_role("caixa", Role.OPERADOR_CAIXA, "Carla Neto")


@pytest.fixture(scope='function')
def roleless_user(db_session):
    return create_user_with_role("semfuncao", None, "Sem Funcao")


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def pharmacist_headers(client, pharmacist_user):
    return auth_headers(get_auth_token(client, "farmaceutico"))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, "caixa"))


@pytest.fixture(scope='function')
def roleless_headers(client, roleless_user):
    return auth_headers(get_auth_token(client, "semfuncao"))


@pytest.fixture(scope='function')
def product(db_session):
    """25 units at 18.50."""
    p = Product(
        name="Paracetamol 500mg",
        category="Analgésicos",
        code="PARA-500",
        cost_price_cents=1000,
        sale_price_cents=1850,
        stock_quantity=25,
        min_stock_quantity=5,
    )
    db_session.add(p)
    db_session.commit()
    return p
