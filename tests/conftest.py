import pytest

from app import create_app
from models import db


@pytest.fixture()
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'tasks.db'}",
        'TASKS_GENERATE_BATCH_SIZE': 1000,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def store(app):
    with app.app_context():
        yield app.extensions['task_store']


@pytest.fixture()
def seeded(store):
    """Three tasks at positions 1..3 titled A, B, C."""
    return store.create_many([("A", "first", 1), ("B", None, 2), ("C", "third", 3)])
