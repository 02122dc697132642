"""Pytest fixtures: a fresh SQLite database per test and a recording mail transport."""
import asyncio
import os
from datetime import datetime, timedelta, timezone

# Cheap hashing and a throwaway database for the app's own startup hook
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from event_manager.database import Base, get_db
from event_manager.mail import MailTransport, get_mailer
from event_manager.main import app
from event_manager.storage import LocalImageStore, get_image_store

# Import all models so they register with Base.metadata
from event_manager.models.user import User, UserSession         # noqa: F401
from event_manager.models.event import Event                    # noqa: F401
from event_manager.models.rsvp import RSVP                      # noqa: F401
from event_manager.models.attendance import Attendance          # noqa: F401
from event_manager.models.notification import InAppNotification  # noqa: F401

DEFAULT_PASSWORD = "secret123"


class RecordingMailTransport(MailTransport):
    """Collects messages instead of sending them; can fail chosen recipients."""

    def __init__(self):
        self.sent = []
        self.attempts = 0
        self.fail_for = set()
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, to, subject, body):
        self.attempts += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)  # let the other sends start
            if to in self.fail_for:
                raise ConnectionError(f"mailbox unavailable: {to}")
            self.sent.append({"to": to, "subject": subject, "body": body})
        finally:
            self.in_flight -= 1


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session for direct service calls and assertions."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def mailer():
    return RecordingMailTransport()


@pytest.fixture(scope="function")
def image_store(tmp_path):
    return LocalImageStore(str(tmp_path / "media"), "/media")


@pytest.fixture(scope="function")
def client(db_engine, mailer, image_store):
    """FastAPI TestClient with database, mail and storage dependencies overridden."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_image_store] = lambda: image_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def email_for(name: str) -> str:
    return f"{name.lower().replace(' ', '.')}@acme.org"


def sign_up_user(client: TestClient, name: str = "Test User", email: str = None,
                 password: str = DEFAULT_PASSWORD, role: str = None) -> dict:
    """Helper: POST /signup and return the created user JSON."""
    body = {"name": name, "email": email or email_for(name), "password": password}
    if role:
        body["role"] = role
    resp = client.post("/api/v1/user/signup", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


def sign_in_user(client: TestClient, email: str, password: str = DEFAULT_PASSWORD) -> str:
    """Helper: POST /signin and return the session token."""
    resp = client.post("/api/v1/user/signin", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def create_account(client: TestClient, name: str, role: str = None) -> tuple[dict, str]:
    """Sign up and sign in; returns (user JSON, token)."""
    user = sign_up_user(client, name=name, role=role)
    return user, sign_in_user(client, user["email"])


def create_test_event(client: TestClient, token: str, title: str = "Team Meetup",
                      start_offset_hours: int = 24, duration_hours: int = 2,
                      files: dict = None, **extra):
    """Helper: POST an event form and return the raw response."""
    start = datetime.now(timezone.utc) + timedelta(hours=start_offset_hours)
    data = {
        "title": title,
        "description": "Monthly get-together",
        "location": "Main Hall",
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=duration_hours)).isoformat(),
    }
    data.update(extra)
    return client.post("/api/v1/event/", data=data, files=files, headers=auth_header(token))
