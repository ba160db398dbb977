"""
Pytest fixtures for KPI portal backend tests.

Provides an in-memory database, the application stores, and test clients
logged in as an admin and as an operator.
"""

from types import SimpleNamespace

import pytest
from celery.signals import before_task_publish
from sqlalchemy.pool import StaticPool

from kpi_portal import create_app
from kpi_portal.extensions import db
from kpi_portal.models.auth import ROLE_ADMIN, ROLE_OPERATOR
from kpi_portal.services import auth_service
from kpi_portal.stores import get_stores

ADMIN_EMAIL = "admin@example.com"
OPERATOR_EMAIL = "operator@example.com"
PASSWORD = "secret1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # one shared connection so every session sees the same in-memory database
        'SQLALCHEMY_ENGINE_OPTIONS': {
            'poolclass': StaticPool,
            'connect_args': {'check_same_thread': False},
        },
        'BCRYPT_ROUNDS': 4,
        'DECK_GENERATION_DELAY_SECONDS': 0.05,
        'CELERY': {
            'broker_url': 'memory://',
            'task_ignore_result': True,
            'task_always_eager': True,
        },
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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
def stores(db_session):
    return get_stores()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def admin_user(stores):
    return auth_service.create_user(
        stores.identities,
        email=ADMIN_EMAIL,
        password=PASSWORD,
        name="Admin User",
        role=ROLE_ADMIN,
        products=["stigviewer", "sams"],
    )


@pytest.fixture(scope='function')
def operator_user(stores):
    return auth_service.create_user(
        stores.identities,
        email=OPERATOR_EMAIL,
        password=PASSWORD,
        name="Operator User",
        role=ROLE_OPERATOR,
        products=["sams"],
    )


def login(client, email: str, password: str = PASSWORD):
    """Helper to bind a session on `client`."""
    return client.post('/api/auth/login', json={'email': email, 'password': password})


@pytest.fixture(scope='function')
def admin_client(app, admin_user):
    client = app.test_client()
    response = login(client, ADMIN_EMAIL)
    assert response.status_code == 200
    return client


@pytest.fixture(scope='function')
def operator_client(app, operator_user):
    client = app.test_client()
    response = login(client, OPERATOR_EMAIL)
    assert response.status_code == 200
    return client


@pytest.fixture(scope='function')
def queued_jobs(app, monkeypatch):
    """
    Queue deck jobs on the in-memory broker instead of running them inline.

    Nothing consumes the queue; tests play the worker by calling
    `deck_jobs.run`. Yields the published task headers and revoked task ids.
    """
    celery_app = app.extensions['celery']
    published = []
    revoked = []

    def record_publish(sender=None, headers=None, **kwargs):
        published.append(headers)

    before_task_publish.connect(record_publish, weak=False)
    monkeypatch.setattr(celery_app.control, 'revoke', lambda task_id, **kwargs: revoked.append(task_id))
    celery_app.conf.task_always_eager = False
    yield SimpleNamespace(published=published, revoked=revoked)
    celery_app.conf.task_always_eager = True
    before_task_publish.disconnect(record_publish)
