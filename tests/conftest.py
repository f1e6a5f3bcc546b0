"""Pytest configuration and shared fixtures."""
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sentinel.database import Base
from sentinel.models.domain import MeetingLog, Student
# Import to register the audit table with SQLAlchemy Base
from sentinel.models.audit import AuditEvent  # noqa: F401
from sentinel.models.enums import LogSentiment, MeetingType
from sentinel.models.report import GeneratedReport
from sentinel.services.gateway import ReportGateway
from sentinel.services.lifecycle import CaseLifecycle, SessionContext


ROSTER = [
    ("S001", "Jane Roe", "5A"),
    ("S002", "John Smith", "5A"),
    ("S003", "Sarah Connor", "5B"),
    ("S004", "Omar Khalid", "5B"),
    ("S005", "Amy Li", "5A"),
]


class FakeGateway(ReportGateway):
    """Records calls and returns a canned report, or raises a canned error."""

    def __init__(self, report=None, error=None):
        self.report = report
        self.error = error
        self.calls = []

    def generate(self, student_name, description, evidence):
        self.calls.append((student_name, description, [r.id for r in evidence]))
        if self.error:
            raise self.error
        return self.report


@pytest.fixture
def make_report():
    """Factory for generated reports; keyword overrides replace defaults."""
    def _make(**overrides):
        fields = dict(
            dsl_summary="Jane Roe reported that John Smith took her lunch at break.",
            chronology=["12:10 John Smith approached Jane Roe", "12:15 Staff intervened"],
            key_evidence=["Two prior concerned logs"],
            evidence_analysis="Recurring at lunch break.",
            policies_applied=["Anti-Bullying"],
            witness_questions=["Who else was present?"],
            next_steps=["Notify DSL", "Contact parents", "Monitor lunch breaks"],
            risk_level="High",
            sentiment="Serious",
        )
        fields.update(overrides)
        return GeneratedReport(**fields)
    return _make


@pytest.fixture
def engine():
    """Fresh in-memory database, shared across threads for the API client."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture
def roster(db_session):
    """Seed the student roster."""
    for student_id, name, class_name in ROSTER:
        db_session.add(Student(id=student_id, full_name=name, class_name=class_name))
    db_session.commit()
    return [name for _, name, _ in ROSTER]


@pytest.fixture
def meeting_logs(db_session):
    """Seed meeting logs: three involve Jane Roe, two of them Concerned."""
    logs = [
        MeetingLog(id="L1", date=date(2024, 9, 2), attendees=["Jane Roe", "Mrs Roe"],
                   meeting_type=MeetingType.PARENT_TEACHER, sentiment=LogSentiment.NEUTRAL,
                   notes="Settling in well.", created_by="Ms Teacher"),
        MeetingLog(id="L2", date=date(2024, 10, 14), attendees=["Jane Roe"],
                   meeting_type=MeetingType.BEHAVIORAL, sentiment=LogSentiment.CONCERNED,
                   notes="Upset after lunch.", created_by="Ms Teacher"),
        MeetingLog(id="L3", date=date(2024, 11, 4), attendees=["Jane Roe", "John Smith"],
                   meeting_type=MeetingType.BEHAVIORAL, sentiment=LogSentiment.CONCERNED,
                   notes="Dispute at lunch.", created_by="Mr Head"),
        MeetingLog(id="L4", date=date(2024, 11, 5), attendees=["Sarah Connor"],
                   meeting_type=MeetingType.ACADEMIC, sentiment=LogSentiment.POSITIVE,
                   notes="Great progress.", created_by="Ms Teacher"),
    ]
    db_session.add_all(logs)
    db_session.commit()
    return logs


@pytest.fixture
def ctx():
    return SessionContext(actor="Safeguarding Lead")


@pytest.fixture
def lifecycle(db_session):
    return CaseLifecycle(db_session)


@pytest.fixture
def sample_case(lifecycle, ctx, make_report, meeting_logs):
    """A High/Serious case for Jane Roe with two evidence logs and three next steps."""
    return lifecycle.create(
        ctx,
        evidence=[meeting_logs[2], meeting_logs[1]],
        report=make_report(),
        student_name="Jane Roe",
        raw_description="Jane says John Smith took her lunch again.",
        date=date(2024, 11, 6),
        incident_type="Bullying",
        class_name="5A"
    )


@pytest.fixture
def fake_gateway(make_report):
    return FakeGateway(report=make_report())


@pytest.fixture
def client(engine, fake_gateway):
    """API client over the in-memory database and the fake gateway."""
    from fastapi.testclient import TestClient
    from sentinel.database import get_db
    from sentinel.main import app
    from sentinel.services.gateway import get_gateway

    TestingSessionLocal = sessionmaker(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: fake_gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
