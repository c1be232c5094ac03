import os
from collections.abc import Iterable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.exceptions import ExtractionServiceError
from app.db.base import Base
from app.db.models import Organization
from app.llm.extractor import ExtractionResult
from app.templates.definition import FieldDescriptor


class ScriptedExtractor:
    """Returns queued results (or raises queued exceptions) in order.

    When the queue runs dry every field is reported present.
    """

    def __init__(self, responses: Iterable[ExtractionResult | Exception] = ()) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, list[str]]] = []

    def extract(self, narrative, fields, *, report_id=None):
        self.calls.append((narrative, [f.key for f in fields]))
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return ExtractionResult(present_fields=[f.key for f in fields], confidence_score=1.0)


class FailingExtractor:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ExtractionServiceError("extractor unavailable")
        self.calls = 0

    def extract(self, narrative, fields, *, report_id=None):
        self.calls += 1
        raise self.exc


def descriptors(*keys: str) -> list[FieldDescriptor]:
    return [FieldDescriptor(key=k, label=k.replace("_", " ").title()) for k in keys]


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Every test starts from default settings."""
    from app.core.settings import get_settings

    for name in ("ACCURACY_THRESHOLD", "REVIEW_QUEUE_THRESHOLD", "VALIDATION_FAILURE_CONFIDENCE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture()
def org(db_session: Session) -> Organization:
    organization = Organization(name="Springfield PD")
    db_session.add(organization)
    db_session.flush()
    return organization


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("SYNC_TEMPLATES_ON_STARTUP", "false")

    from app.core.settings import get_settings

    get_settings.cache_clear()

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client

    get_settings.cache_clear()
    os.environ.pop("DATABASE_URL", None)


@pytest.fixture()
def make_report(db_session: Session, org: Organization):
    from app.db.models import Report

    def _make(**overrides) -> Report:
        values = {
            "organization_id": org.id,
            "user_id": "officer-17",
            "report_type": "incident",
            "narrative": "I was dispatched to a disturbance.",
        }
        values.update(overrides)
        report = Report(**values)
        db_session.add(report)
        db_session.flush()
        return report

    return _make
