"""API routes for the safeguarding case workflow."""
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from sentinel.database import get_db
from sentinel.models.domain import MeetingLog, SafeguardingCase, Student
from sentinel.models.enums import CaseStatus, EvidenceFilter
from sentinel.models.report import GeneratedReport
from sentinel.services.errors import CaseError, GatewayError, InvariantViolation, NotFoundError, ValidationError
from sentinel.services.gateway import ReportGateway, get_gateway
from sentinel.services.lifecycle import CaseLifecycle, SessionContext
from sentinel.services.redactor import redact_text
from sentinel.services.scoring import risk_score, resolution_percentage
from sentinel.api.schemas import (
    StudentCreate,
    StudentResponse,
    MeetingLogCreate,
    MeetingLogResponse,
    GenerateRequest,
    CaseCreate,
    CaseUpdate,
    StatusUpdate,
    StepToggle,
    ResolutionNotesUpdate,
    RegenerateRequest,
    CaseResponse,
    CaseStatsResponse,
    CaseFacetsResponse,
    AuditEventResponse,
    ErrorResponse
)

router = APIRouter()

ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Case not found"},
    409: {"model": ErrorResponse, "description": "Refused - would break a case invariant"},
    422: {"model": ErrorResponse, "description": "Refused - required fields missing"},
}

GATEWAY_RESPONSES = {
    429: {"model": ErrorResponse, "description": "Report generation rate limited"},
    502: {"model": ErrorResponse, "description": "Report generation failed"},
}


def get_session_context(x_user_name: str = Header("system")) -> SessionContext:
    """Dependency: the acting user, from the X-User-Name header."""
    return SessionContext(actor=x_user_name)


def http_error(e: CaseError) -> HTTPException:
    """Translate a case engine failure into an HTTP error with a structured body."""
    detail = {"error": e.kind, "message": e.message}
    if isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, InvariantViolation):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, ValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(e, GatewayError):
        detail["category"] = e.category
        code = (
            status.HTTP_429_TOO_MANY_REQUESTS
            if e.category == GatewayError.RATE_LIMIT
            else status.HTTP_502_BAD_GATEWAY
        )
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=detail)


def case_response(lc: CaseLifecycle, case: SafeguardingCase, redact: bool = False) -> CaseResponse:
    """Build the read model; scores and redaction are recomputed on every read."""
    report = case.generated_report
    view = lc.redacted_report(case, redact)
    return CaseResponse(
        id=case.id,
        student_name=case.student_name,
        class_name=case.class_name,
        date=case.date,
        incident_type=case.incident_type,
        raw_description=view_text(lc, case, case.raw_description, redact),
        generated_report=view,
        status=case.status,
        related_log_ids=list(case.related_log_ids or []),
        created_by=case.created_by,
        is_confidential=case.is_confidential,
        resolution_notes=view_text(lc, case, case.resolution_notes, redact),
        # Redacted like next_steps, so completed steps still match them
        completed_steps=[view_text(lc, case, step, redact) for step in case.completed_steps or []],
        created_at=case.created_at,
        updated_at=case.updated_at,
        risk_score=risk_score(report.risk_level, report.sentiment),
        resolution_percentage=resolution_percentage(case.completed_steps or [], report.next_steps),
        redacted=redact,
    )


def view_text(lc: CaseLifecycle, case: SafeguardingCase, text: str, redact: bool) -> str:
    if not redact:
        return text
    return redact_text(text, case.student_name, lc.roster_names(), True)


# Roster and meeting log endpoints (reference data owned elsewhere)
@router.post("/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
def create_student(student_data: StudentCreate, db: Session = Depends(get_db)):
    """Register a roster entry."""
    student = Student(**student_data.model_dump())
    db.merge(student)
    db.commit()
    return db.query(Student).filter(Student.id == student_data.id).first()


@router.get("/students", response_model=List[StudentResponse])
def list_students(class_name: Optional[str] = None, db: Session = Depends(get_db)):
    """List the roster, optionally for one class."""
    query = db.query(Student)
    if class_name:
        query = query.filter(Student.class_name == class_name)
    return query.order_by(Student.full_name).all()


@router.post("/meeting-logs", response_model=MeetingLogResponse, status_code=status.HTTP_201_CREATED)
def create_meeting_log(log_data: MeetingLogCreate, db: Session = Depends(get_db)):
    """Record a meeting log so it can be attached as evidence."""
    record = MeetingLog(**log_data.model_dump())
    db.merge(record)
    db.commit()
    return db.query(MeetingLog).filter(MeetingLog.id == log_data.id).first()


@router.get("/meeting-logs", response_model=List[MeetingLogResponse])
def list_meeting_logs(db: Session = Depends(get_db)):
    """List all meeting logs, newest first."""
    return db.query(MeetingLog).order_by(MeetingLog.date.desc()).all()


@router.get("/evidence", response_model=List[MeetingLogResponse])
def candidate_evidence(student_name: str = "", concerns_only: bool = False, db: Session = Depends(get_db)):
    """Meeting logs the student attended, newest first; optionally only Concerned ones."""
    evidence_filter = EvidenceFilter.CONCERNS_ONLY if concerns_only else EvidenceFilter.ALL
    return CaseLifecycle(db).candidate_evidence(student_name, evidence_filter)


# Case authoring endpoints
@router.post("/cases/generate", response_model=GeneratedReport, responses=GATEWAY_RESPONSES)
def generate_report(
    request: GenerateRequest,
    db: Session = Depends(get_db),
    gateway: ReportGateway = Depends(get_gateway)
):
    """
    Generate a report for a draft case. Nothing is stored.

    Gateway failures come back as 502 (429 when rate limited) with their category.
    """
    lc = CaseLifecycle(db, gateway)
    try:
        return lc.generate_report(request.student_name, request.description, request.evidence_ids)
    except CaseError as e:
        raise http_error(e)


@router.post("/cases", response_model=CaseResponse, status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
def create_case(
    case_data: CaseCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    """
    Commit a generated report as a new case.

    WILL REFUSE if:
    - No generated report is supplied
    - Student name or description is empty
    """
    lc = CaseLifecycle(db)
    try:
        case = lc.create(
            ctx,
            evidence=lc.load_evidence(case_data.related_log_ids),
            report=case_data.generated_report,
            student_name=case_data.student_name,
            raw_description=case_data.raw_description,
            date=case_data.date,
            incident_type=case_data.incident_type,
            status=case_data.status,
            is_confidential=case_data.is_confidential,
            class_name=case_data.class_name
        )
    except CaseError as e:
        raise http_error(e)
    return case_response(lc, case)


@router.get("/cases", response_model=List[CaseResponse])
def list_cases(
    case_status: Optional[CaseStatus] = Query(None, alias="status"),
    incident_type: Optional[str] = None,
    author: Optional[str] = None,
    search: Optional[str] = None,
    student_name: Optional[str] = None,
    class_name: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """List cases, newest first, filtered by any combination of fields."""
    lc = CaseLifecycle(db)
    cases = lc.list_cases(
        status=case_status,
        incident_type=incident_type,
        author=author,
        search=search,
        student_name=student_name,
        class_name=class_name
    )
    return [case_response(lc, c) for c in cases]


@router.get("/cases/stats", response_model=CaseStatsResponse)
def case_stats(class_name: Optional[str] = None, db: Session = Depends(get_db)):
    """Open, investigating, closed and high-risk counts."""
    lc = CaseLifecycle(db)
    return asdict(lc.case_stats(lc.list_cases(class_name=class_name)))


@router.get("/cases/facets", response_model=CaseFacetsResponse)
def case_facets(db: Session = Depends(get_db)):
    """Distinct incident types and authors, for filter dropdowns."""
    return CaseLifecycle(db).facets()


@router.get("/cases/{case_id}", response_model=CaseResponse, responses=ERROR_RESPONSES)
def get_case(case_id: str, redact: bool = False, db: Session = Depends(get_db)):
    """Get one case; redact=true replaces other students' names in its text."""
    lc = CaseLifecycle(db)
    try:
        case = lc.get(case_id)
    except CaseError as e:
        raise http_error(e)
    return case_response(lc, case, redact)


@router.put("/cases/{case_id}", response_model=CaseResponse, responses=ERROR_RESPONSES)
def update_case(
    case_id: str,
    case_data: CaseUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    """
    Replace a case's fields (last write wins).
    Resolution notes and completed steps are kept unless sent.
    """
    lc = CaseLifecycle(db)
    try:
        case = lc.update(ctx, case_id, case_data.model_dump(exclude_unset=True))
    except CaseError as e:
        raise http_error(e)
    return case_response(lc, case)


@router.post("/cases/{case_id}/regenerate", response_model=CaseResponse, responses={**ERROR_RESPONSES, **GATEWAY_RESPONSES})
def regenerate_case(
    case_id: str,
    request: RegenerateRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
    gateway: ReportGateway = Depends(get_gateway)
):
    """
    Replace the case's report. Completed steps no longer in the report are dropped.
    Without a report in the body, the gateway generates one; on failure the case is unchanged.
    """
    lc = CaseLifecycle(db, gateway)
    try:
        if request.generated_report is None:
            case = lc.regenerate_from_gateway(ctx, case_id)
        else:
            case = lc.regenerate(ctx, case_id, request.generated_report)
    except CaseError as e:
        raise http_error(e)
    return case_response(lc, case)


@router.put("/cases/{case_id}/status", response_model=CaseResponse, responses=ERROR_RESPONSES)
def set_status(
    case_id: str,
    status_data: StatusUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    """Move a case to any status; Closed cases can be reopened."""
    lc = CaseLifecycle(db)
    try:
        case = lc.set_status(ctx, case_id, status_data.status)
    except CaseError as e:
        raise http_error(e)
    return case_response(lc, case)


@router.put("/cases/{case_id}/steps/toggle", response_model=CaseResponse, responses=ERROR_RESPONSES)
def toggle_step(
    case_id: str,
    toggle_data: StepToggle,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    """
    Mark a next step complete, or un-mark it.
    Refused with 409 if the step is not in the case's report.
    """
    lc = CaseLifecycle(db)
    try:
        case = lc.toggle_action_step(ctx, case_id, toggle_data.step)
    except CaseError as e:
        raise http_error(e)
    return case_response(lc, case)


@router.put("/cases/{case_id}/resolution-notes", response_model=CaseResponse, responses=ERROR_RESPONSES)
def save_resolution_notes(
    case_id: str,
    notes_data: ResolutionNotesUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    """Save resolution notes (last write wins)."""
    lc = CaseLifecycle(db)
    try:
        case = lc.save_resolution_notes(ctx, case_id, notes_data.notes)
    except CaseError as e:
        raise http_error(e)
    return case_response(lc, case)


@router.delete("/cases/{case_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_case(
    case_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    """Hard-delete a case. Deleting an unknown id also returns 204."""
    CaseLifecycle(db).delete(ctx, case_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/cases/{case_id}/export", response_class=PlainTextResponse, responses=ERROR_RESPONSES)
def export_case(
    case_id: str,
    redact: bool = False,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    """Plain-text confidential report for copy/print. The export is audited."""
    try:
        return CaseLifecycle(db).export_text(ctx, case_id, redact)
    except CaseError as e:
        raise http_error(e)


@router.get("/cases/{case_id}/audit", response_model=List[AuditEventResponse])
def case_audit_trail(case_id: str, db: Session = Depends(get_db)):
    """Append-only audit trail for a case, oldest first. Kept after deletion."""
    return CaseLifecycle(db).audit_trail(case_id)
