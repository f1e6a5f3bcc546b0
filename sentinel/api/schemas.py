"""Pydantic schemas for request/response validation."""
from datetime import date as date_type, datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from sentinel.models.enums import CaseStatus, LogSentiment, MeetingType
from sentinel.models.report import GeneratedReport


# Roster / meeting log schemas
class StudentCreate(BaseModel):
    id: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    class_name: Optional[str] = None


class StudentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    class_name: Optional[str]


class MeetingLogCreate(BaseModel):
    id: str = Field(..., min_length=1)
    date: date_type
    attendees: List[str] = Field(default_factory=list)
    meeting_type: MeetingType = MeetingType.OTHER
    sentiment: Optional[LogSentiment] = None
    notes: str = ""
    created_by: Optional[str] = None


class MeetingLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    date: date_type
    attendees: List[str]
    meeting_type: MeetingType
    sentiment: Optional[LogSentiment]
    notes: str
    created_by: Optional[str]


# Case authoring schemas
class GenerateRequest(BaseModel):
    student_name: str
    description: str
    evidence_ids: List[str] = Field(default_factory=list)


class CaseCreate(BaseModel):
    student_name: str
    raw_description: str
    date: Optional[date_type] = None
    incident_type: str = "Behavioral"
    status: CaseStatus = CaseStatus.OPEN
    is_confidential: bool = False
    class_name: Optional[str] = None
    related_log_ids: List[str] = Field(default_factory=list)
    generated_report: Optional[GeneratedReport] = None


class CaseUpdate(BaseModel):
    """Every field optional; only the fields sent are replaced."""
    student_name: Optional[str] = None
    class_name: Optional[str] = None
    date: Optional[date_type] = None
    incident_type: Optional[str] = None
    raw_description: Optional[str] = None
    generated_report: Optional[GeneratedReport] = None
    status: Optional[CaseStatus] = None
    related_log_ids: Optional[List[str]] = None
    is_confidential: Optional[bool] = None
    resolution_notes: Optional[str] = None
    completed_steps: Optional[List[str]] = None


class StatusUpdate(BaseModel):
    status: CaseStatus


class StepToggle(BaseModel):
    step: str


class ResolutionNotesUpdate(BaseModel):
    notes: str = ""


class RegenerateRequest(BaseModel):
    """Omit generated_report to have the gateway produce a fresh one."""
    generated_report: Optional[GeneratedReport] = None


# Case read schemas
class CaseResponse(BaseModel):
    id: str
    student_name: str
    class_name: Optional[str]
    date: date_type
    incident_type: str
    raw_description: str
    generated_report: GeneratedReport
    status: CaseStatus
    related_log_ids: List[str]
    created_by: str
    is_confidential: bool
    resolution_notes: str
    completed_steps: List[str]
    created_at: datetime
    updated_at: datetime

    # Derived on read
    risk_score: int
    resolution_percentage: int
    redacted: bool = False


class CaseStatsResponse(BaseModel):
    total: int
    open: int
    investigating: int
    closed: int
    high_risk: int


class CaseFacetsResponse(BaseModel):
    incident_types: List[str]
    authors: List[str]


class AuditEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    actor: str
    action: str
    case_id: str
    payload_json: Optional[dict]


# Error response
class ErrorResponse(BaseModel):
    """Response when an operation is refused or fails."""
    error: str
    message: str
    category: Optional[str] = None
