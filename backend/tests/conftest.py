import os

# 必须在导入应用之前设置
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ROOMBOOK_RUN_RECONCILER"] = "false"

from datetime import date, datetime, time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roombook.api import auth
from roombook.api.auth import get_password_hash
from roombook.api.deps import get_change_feed, get_clock, get_session_factory
from roombook.db.database import Base, enable_sqlite_foreign_keys, get_db
from roombook.db.store import BookingStore
from roombook.main import app
from roombook.models import Course, Room, User
from roombook.scheduling import hours
from roombook.scheduling.clock import FixedClock
from roombook.scheduling.feed import ChangeFeed

DAY = date(2025, 3, 10)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock.at(DAY, time(10, 0))


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def store(db, feed):
    return BookingStore(db, feed=feed)


@pytest.fixture(autouse=True)
def reset_process_state():
    hours.remember_opening_hours(None)
    auth.tokens.clear()
    yield
    hours.remember_opening_hours(None)
    auth.tokens.clear()


@pytest.fixture
def client(session_factory, clock, feed):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_change_feed] = lambda: feed
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def add_room(db, name, **fields):
    room = Room(name=name, **fields)
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


def add_course(db, name, color_hex="#64748b"):
    course = Course(name=name, color_hex=color_hex)
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def add_booking(store, room, start, end, state="Reserved", day=DAY, **fields):
    fields.setdefault("booked_by", "Ms Smith")
    return store.insert_booking(
        room_id=room.id,
        booking_day=day,
        start_time=start,
        end_time=end,
        state=state,
        **fields,
    )


def add_user(db, email, password="secret123", **flags):
    user = User(email=email, name=email.split("@")[0], password_hash=get_password_hash(password), **flags)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login(client, email, password="secret123"):
    response = client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


@pytest.fixture
def room(db):
    return add_room(db, "Room 1", capacity=20)


@pytest.fixture
def admin_headers(client, db):
    add_user(db, "admin@example.com", authorisation=True, settings=True, analytics=True)
    return login(client, "admin@example.com")


def at(hour, minute=0, day=DAY):
    return datetime.combine(day, time(hour, minute))
