import os
import uuid
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, SessionLocal, engine  # noqa: E402
from app.models.custody import ArchiveLocation  # noqa: E402
from app.models.person import ActorRole, Person  # noqa: E402


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def event_queue():
    """Stand-in for the broker; tests can assert on queued events."""
    with patch("app.tasks.events.process_event.delay") as mock_delay:
        yield mock_delay


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_person(db_session):
    def _make(role: ActorRole = ActorRole.clerk, first_name: str = "Test"):
        p = Person(
            first_name=first_name,
            last_name="Person",
            email=f"{first_name.lower()}-{uuid.uuid4().hex[:8]}@test.com",
            role=role,
        )
        db_session.add(p)
        db_session.commit()
        db_session.refresh(p)
        return p

    return _make


@pytest.fixture()
def person(make_person):
    return make_person(first_name="Owner")


@pytest.fixture()
def archive_location(db_session):
    loc = ArchiveLocation(
        name="Main Archive",
        code=f"L-{uuid.uuid4().hex[:6]}",
        location="Basement, room 2",
        shelves_count=12,
    )
    db_session.add(loc)
    db_session.commit()
    db_session.refresh(loc)
    return loc


@pytest.fixture()
def client():
    from app.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def auth_headers(person):
    return {"X-Person-Id": str(person.id)}
