"""Domain models - the safeguarding case aggregate and the reference data it reads."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Date, DateTime, Boolean, Text, JSON, Enum as SQLEnum

from sentinel.database import Base
from sentinel.models.enums import CaseStatus, LogSentiment, MeetingType
from sentinel.models.report import GeneratedReport


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_case_id() -> str:
    return str(uuid.uuid4())


class Student(Base):
    """
    Roster entry. Owned by the external roster; the engine only reads it
    to scope evidence and to build the redaction name list.
    """
    __tablename__ = "students"

    id = Column(String, primary_key=True, index=True)
    full_name = Column(String, nullable=False, index=True)
    class_name = Column(String, nullable=True, index=True)


class MeetingLog(Base):
    """
    Interaction record ("meeting log"). Read-only input to the evidence correlator.

    attendees is a list of display names (students, parents, staff).
    """
    __tablename__ = "meeting_logs"

    id = Column(String, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    attendees = Column(JSON, nullable=False, default=list)
    meeting_type = Column(SQLEnum(MeetingType), nullable=False, default=MeetingType.OTHER)
    sentiment = Column(SQLEnum(LogSentiment), nullable=True)
    notes = Column(Text, nullable=False, default="")
    created_by = Column(String, nullable=True)


class SafeguardingCase(Base):
    """
    A safeguarding incident case file.

    Invariants enforced by the lifecycle service:
    - id is assigned once at creation and never reused
    - created_by is set once and never reassigned
    - completed_steps is always a subset of generated_report.next_steps
    - updated_at strictly increases on every mutation
    """
    __tablename__ = "safeguarding_cases"

    id = Column(String, primary_key=True, index=True, default=new_case_id)
    student_name = Column(String, nullable=False, index=True)
    class_name = Column(String, nullable=True, index=True)
    date = Column(Date, nullable=False)  # Incident date, not record creation time
    incident_type = Column(String, nullable=False, index=True)
    raw_description = Column(Text, nullable=False)

    # GeneratedReport, stored whole as JSON
    generated_report_json = Column("generated_report", JSON, nullable=False)

    status = Column(SQLEnum(CaseStatus), nullable=False, default=CaseStatus.OPEN)
    related_log_ids = Column(JSON, nullable=False, default=list)
    created_by = Column(String, nullable=False)
    is_confidential = Column(Boolean, nullable=False, default=False)
    resolution_notes = Column(Text, nullable=False, default="")
    completed_steps = Column(JSON, nullable=False, default=list)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def generated_report(self) -> GeneratedReport:
        return GeneratedReport.model_validate(self.generated_report_json)

    @generated_report.setter
    def generated_report(self, report: GeneratedReport) -> None:
        self.generated_report_json = report.model_dump(mode="json")
