# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Every test gets its own Flask app on a fresh in-memory SQLite database and a
# LocalStore whose clock the test can move.
# =============================================================================

import os

# Set before config.py is imported, it reads the environment at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timedelta

import pytest

from app import create_app
from config import TestConfig
from models import db
from store import LocalStore


class FakeClock:
    """Callable clock that tests can set or advance."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clock():
    # A Wednesday
    return FakeClock(datetime(2024, 5, 15, 12, 0, 0))


@pytest.fixture
def store(app, clock):
    return LocalStore(db.session, clock=clock, bcrypt_rounds=app.config["BCRYPT_ROUNDS"])


@pytest.fixture
def student_id(store):
    return store.create_user(
        name="Ada Student",
        email="ada@campus.edu",
        password="hunter22",
        role="student",
        student_id="S-1001",
    )


@pytest.fixture
def rate(store, student_id):
    """Add a rating for the default student with sensible defaults."""

    def _rate(meal_name="Burger", scores=(4, 4, 4, 4), user_id=None, **kwargs):
        taste, portion, variety, overall = scores
        return store.add_rating(
            user_id=user_id or student_id,
            taste=taste,
            portion=portion,
            variety=variety,
            overall=overall,
            meal_name=meal_name,
            **kwargs,
        )

    return _rate
