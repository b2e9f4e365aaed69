"""Pytest configuration and fixtures for ChoreQuest tests."""

import pytest
from datetime import date, datetime, time

from chorequest.app import create_app
from chorequest.models import db, Family, Child, Chore, Assignment

# A Monday, well clear of any DST change in Europe/London
MONDAY = date(2026, 3, 2)


def noon(day: date) -> datetime:
    """Naive UTC timestamp at 12:00 on the given day."""
    return datetime.combine(day, time(12, 0))


@pytest.fixture(autouse=True)
def london_tz(monkeypatch):
    """Pin the local calendar so period maths does not depend on the host."""
    monkeypatch.setenv('TZ', 'Europe/London')


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing."""
    app = create_app('testing')

    # Create database tables
    with app.app_context():
        db.create_all()

    yield app

    # Clean up
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for making requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create database session for tests."""
    with app.app_context():
        yield db.session


@pytest.fixture
def family(db_session):
    """A family with penalties off and no protection window."""
    family = Family(
        name='The Testers',
        streak_protection_days=0,
        penalty_enabled=False,
        penalty_mode='both'
    )
    db_session.add(family)
    db_session.commit()
    return family


@pytest.fixture
def other_family(db_session):
    """A second family, for scoping checks."""
    family = Family(name='The Neighbours')
    db_session.add(family)
    db_session.commit()
    return family


@pytest.fixture
def child_a(db_session, family):
    child = Child(family_id=family.id, nickname='Alice')
    db_session.add(child)
    db_session.commit()
    return child


@pytest.fixture
def child_b(db_session, family):
    child = Child(family_id=family.id, nickname='Ben')
    db_session.add(child)
    db_session.commit()
    return child


@pytest.fixture
def daily_chore(db_session, family):
    """Daily chore worth 50p."""
    chore = Chore(
        family_id=family.id,
        title='Make bed',
        frequency='daily',
        base_reward_pence=50,
        reward_stars=0,
        active=True
    )
    db_session.add(chore)
    db_session.commit()
    return chore


@pytest.fixture
def weekly_chore(db_session, family):
    """Weekly chore worth £1 and 2 stars."""
    chore = Chore(
        family_id=family.id,
        title='Tidy room',
        frequency='weekly',
        base_reward_pence=100,
        reward_stars=2,
        active=True
    )
    db_session.add(chore)
    db_session.commit()
    return chore


@pytest.fixture
def make_assignment(db_session):
    """Factory for assignments created directly, bypassing the generator."""
    def _make(chore, child=None, period_start=MONDAY, competitive=False):
        assignment = Assignment(
            chore_id=chore.id,
            family_id=chore.family_id,
            child_id=child.id if child else None,
            period_start=period_start,
            competitive=competitive,
            created_at=noon(period_start)
        )
        db_session.add(assignment)
        db_session.commit()
        return assignment
    return _make


@pytest.fixture
def guardian_headers(family):
    """Headers the gateway sets for a guardian."""
    return {'X-Family-Id': str(family.id), 'X-Actor-Role': 'guardian'}


@pytest.fixture
def relative_headers(family):
    return {'X-Family-Id': str(family.id), 'X-Actor-Role': 'relative'}


@pytest.fixture
def system_headers():
    """The external scheduler, not scoped to a family."""
    return {'X-Actor-Role': 'system'}


@pytest.fixture
def child_a_headers(family, child_a):
    return {'X-Family-Id': str(family.id), 'X-Actor-Role': 'child', 'X-Child-Id': str(child_a.id)}


@pytest.fixture
def child_b_headers(family, child_b):
    return {'X-Family-Id': str(family.id), 'X-Actor-Role': 'child', 'X-Child-Id': str(child_b.id)}
