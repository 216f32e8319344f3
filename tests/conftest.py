import json
import os
import smtplib

# Keep the module-level engine off the developer's data directory
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_BACKEND"] = "memory"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from chavrusa import email_service  # noqa: E402
from chavrusa.database import create_db_engine, get_db  # noqa: E402
from chavrusa.main import app  # noqa: E402
from chavrusa.migrations import run_migrations  # noqa: E402
from chavrusa.models import Post  # noqa: E402
from chavrusa.rate_limiter import InMemoryRateLimitStore, RateLimiter, set_rate_limiter  # noqa: E402
from chavrusa.shared.clock import iso_after_days, now_iso  # noqa: E402

RELAY_ENV = ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "SMTP_SECURE", "RELAY_FROM_EMAIL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Each test starts with no relay, no owner key and the default policy"""
    for name in RELAY_ENV + ("OWNER_DELETE_KEY", "BASE_URL", "VALIDATION_POLICY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")


@pytest.fixture
def engine(tmp_path):
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'board.db'}")
    run_migrations(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    set_rate_limiter(RateLimiter(InMemoryRateLimitStore()))
    yield TestClient(app)
    app.dependency_overrides.clear()
    set_rate_limiter(None)


@pytest.fixture
def smtp_configured(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.relay.test")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_USER", "relay@chavrusa.test")
    monkeypatch.setenv("SMTP_PASS", "app-password")


@pytest.fixture
def sent_emails(monkeypatch, smtp_configured):
    """Capture relay emails instead of talking to an SMTP server"""
    outbox = []

    def fake_send(settings, to, email):
        outbox.append({"to": to, "from": settings["from_address"], "email": email})

    monkeypatch.setattr(email_service, "send_via_smtp", fake_send)
    return outbox


@pytest.fixture
def failing_smtp(monkeypatch, smtp_configured):
    def fake_send(settings, to, email):
        raise smtplib.SMTPServerDisconnected("Connection unexpectedly closed")

    monkeypatch.setattr(email_service, "send_via_smtp", fake_send)


@pytest.fixture
def post_payload():
    """Build a valid creation payload, overriding any field"""

    def _payload(**overrides):
        payload = {
            "category": "Gemara",
            "seferName": "Berachos",
            "topic": "Daf Yomi",
            "learningStyle": "Slow and thorough",
            "familiarityLevel": "Beginner",
            "timeZone": "America/New_York",
            "availabilityNotes": "Weeknights after maariv",
            "availabilitySlots": [{"day": "Mon", "start": "18:00", "end": "20:00", "flexible": False}],
            "openToOtherTimes": False,
            "format": "remote_only",
            "contactMethod": "relay",
            "posterName": "sara cohen",
            "email": "poster@chavrusa.test",
            "durationDays": 14,
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def make_post(db_session):
    """Insert a post row directly, with explicit timestamps when needed"""

    def _make_post(**overrides):
        fields = {
            "category": "Gemara",
            "sefer_name": "Berachos",
            "topic": "Daf Yomi",
            "learning_style": "Slow and thorough",
            "familiarity_level": "Beginner",
            "time_zone": "America/New_York",
            "availability_notes": "",
            "availability_slots": [{"day": "Mon", "start": "18:00", "end": "20:00", "flexible": False}],
            "open_to_other_times": 0,
            "format": "remote_only",
            "city": "",
            "state": "",
            "contact_method": "relay",
            "poster_name": "sara cohen",
            "email": "poster@chavrusa.test",
            "duration_days": 30,
            "created_at": now_iso(),
            "expires_at": iso_after_days(30),
            "status": "active",
        }
        fields.update(overrides)
        if isinstance(fields["availability_slots"], list):
            fields["availability_slots"] = json.dumps(fields["availability_slots"])

        post = Post(**fields)
        db_session.add(post)
        db_session.commit()
        db_session.refresh(post)
        return post

    return _make_post
