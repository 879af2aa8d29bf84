# tests/conftest.py
import os

# Pin the runtime default zone before the settings object is created
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.core.events import EventBus, global_event_bus
from app.db.models.base import Base
from app.db.models.schedule import Group, Schedule
from app.db.session import build_engine, get_db


@pytest.fixture()
def engine(tmp_path):
    # File-backed so every session gets its own connection
    engine = build_engine(f"sqlite:///{tmp_path / 'contacthub_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def event_bus():
    return EventBus()


@pytest.fixture(autouse=True)
def clear_global_subscriptions():
    yield
    global_event_bus.clear_subscriptions()


@pytest.fixture()
def client(session_factory):
    from app.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_group(db_session):
    def _make_group(name="Family", **kwargs):
        group = Group(name=name, **kwargs)
        db_session.add(group)
        db_session.commit()
        return group

    return _make_group


@pytest.fixture()
def make_schedule(db_session):
    def _make_schedule(group, **kwargs):
        values = {
            "type": "recurring",
            "start_date": date(2024, 1, 1),
            "start_time": "09:00",
            "timezone": "UTC",
            "exceptions": [],
            "overrides": [],
            "channels": [],
        }
        values.update(kwargs)
        schedule = Schedule(group_id=group.id, **values)
        db_session.add(schedule)
        db_session.commit()
        return schedule

    return _make_schedule

