"""
Case lifecycle - the single authority for creating and mutating safeguarding cases.

Every write to a case goes through CaseLifecycle. Each mutation is validated
first, then applied, audited and committed together; a refused operation
leaves the store untouched.

A CaseLifecycle instance is one session (the API builds one per request).
Every timestamp it stamps is strictly later than the one before, across
all the cases it touches.

Known gap: updates are last-write-wins. There is no version field, so two
sessions editing the same case silently overwrite each other.
"""
from dataclasses import dataclass
from datetime import date as date_type, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog
from sqlalchemy.orm import Session

from sentinel.models.audit import AuditEvent, AuditAction
from sentinel.models.domain import SafeguardingCase, MeetingLog, Student, utcnow
from sentinel.models.enums import CaseStatus, EvidenceFilter
from sentinel.models.report import GeneratedReport
from sentinel.services.correlator import correlate_evidence
from sentinel.services.errors import ValidationError, NotFoundError, InvariantViolation
from sentinel.services.gateway import ReportGateway
from sentinel.services.redactor import redact_text
from sentinel.services.scoring import is_high_risk

log = structlog.get_logger(__name__)

# Fields a caller may replace through update()
UPDATABLE_FIELDS = (
    "student_name",
    "class_name",
    "date",
    "incident_type",
    "raw_description",
    "generated_report",
    "status",
    "related_log_ids",
    "is_confidential",
    "resolution_notes",
    "completed_steps",
)


@dataclass(frozen=True)
class SessionContext:
    """Who is acting. Passed into every mutating operation, never held globally."""
    actor: str


@dataclass(frozen=True)
class CaseStats:
    total: int
    open: int
    investigating: int
    closed: int
    high_risk: int


def reconcile_steps(completed_steps: Iterable[str], next_steps: Sequence[str]) -> List[str]:
    """Drop completed entries that are no longer recommended next steps."""
    allowed = set(next_steps)
    return [step for step in completed_steps if step in allowed]


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return value


class CaseLifecycle:
    """Creates, mutates and deletes safeguarding cases, and answers queries about them."""

    def __init__(self, db: Session, gateway: Optional[ReportGateway] = None):
        self.db = db
        self.gateway = gateway
        self._last_stamp: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, case_id: str) -> SafeguardingCase:
        case = self.db.query(SafeguardingCase).filter(SafeguardingCase.id == case_id).first()
        if not case:
            raise NotFoundError(case_id)
        return case

    def load_evidence(self, log_ids: Sequence[str]) -> List[MeetingLog]:
        """Fetch meeting logs by id, in the order given. Unknown ids are skipped."""
        if not log_ids:
            return []
        found = {
            record.id: record
            for record in self.db.query(MeetingLog).filter(MeetingLog.id.in_(list(log_ids))).all()
        }
        missing = [log_id for log_id in log_ids if log_id not in found]
        if missing:
            log.warning("evidence_ids_not_found", count=len(missing))
        return [found[log_id] for log_id in log_ids if log_id in found]

    def candidate_evidence(
        self,
        student_name: str,
        evidence_filter: EvidenceFilter = EvidenceFilter.ALL
    ) -> List[MeetingLog]:
        """Meeting logs that could back a case for this student, newest first."""
        if not student_name:
            return []
        return correlate_evidence(student_name, self.db.query(MeetingLog).all(), evidence_filter)

    def roster_names(self) -> List[str]:
        return [name for (name,) in self.db.query(Student.full_name).all()]

    # ------------------------------------------------------------------
    # Draft -> generated
    # ------------------------------------------------------------------

    def generate_report(
        self,
        student_name: str,
        description: str,
        evidence_ids: Sequence[str] = ()
    ) -> GeneratedReport:
        """
        Ask the gateway for a report. Never touches stored cases.

        GatewayError propagates unchanged; no substitute report is produced.
        """
        _require_text(student_name, "student_name")
        _require_text(description, "raw_description")
        if self.gateway is None:
            raise ValidationError("No report gateway configured")

        evidence = self.load_evidence(evidence_ids)
        return self.gateway.generate(student_name, description, evidence)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        ctx: SessionContext,
        evidence: Sequence,
        report: Optional[GeneratedReport],
        student_name: str,
        raw_description: str,
        date: Optional[date_type] = None,
        incident_type: str = "Behavioral",
        status: CaseStatus = CaseStatus.OPEN,
        is_confidential: bool = False,
        class_name: Optional[str] = None
    ) -> SafeguardingCase:
        """
        Commit a generated report as a new case.

        Invariants:
        - A case cannot exist without a generated report
        - student_name and raw_description must be non-empty
        - created_by is the acting user and is never reassigned afterwards
        - related_log_ids is a snapshot of the evidence ids at authoring time
        """
        if report is None:
            raise ValidationError("A case requires a generated report")
        _require_text(student_name, "student_name")
        _require_text(raw_description, "raw_description")
        _require_text(ctx.actor, "actor")

        now = self._stamp()
        case = SafeguardingCase(
            student_name=student_name.strip(),
            class_name=class_name,
            date=date or now.date(),
            incident_type=incident_type or "Behavioral",
            raw_description=raw_description,
            generated_report=report,
            status=CaseStatus(status),
            related_log_ids=[record.id for record in evidence],
            created_by=ctx.actor,
            is_confidential=bool(is_confidential),
            resolution_notes="",
            completed_steps=[],
            created_at=now,
            updated_at=now,
        )
        self.db.add(case)
        self.db.flush()

        self._audit(ctx, AuditAction.CASE_CREATED, case.id, {
            "status": case.status.value,
            "risk_level": report.risk_level.value,
            "evidence_count": len(case.related_log_ids),
        })
        self.db.commit()
        self.db.refresh(case)

        log.info("case_created", case_id=case.id, actor=ctx.actor)
        return case

    def update(self, ctx: SessionContext, case_id: str, changes: Dict[str, Any]) -> SafeguardingCase:
        """
        Replace a stored case's fields by id (last write wins).

        - created_by is always preserved
        - resolution_notes and completed_steps are kept unless supplied
        - a supplied report reconciles completed_steps against its next_steps
        - supplied completed_steps must all be current next steps
        """
        case = self.get(case_id)

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        if "student_name" in changes:
            _require_text(changes["student_name"], "student_name")
        if "raw_description" in changes:
            _require_text(changes["raw_description"], "raw_description")
        if "incident_type" in changes:
            _require_text(changes["incident_type"], "incident_type")
        for field in ("date", "status", "is_confidential"):
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be empty")

        report = case.generated_report
        if "generated_report" in changes:
            report = changes["generated_report"]
            if report is None:
                raise ValidationError("A case requires a generated report")
            if isinstance(report, dict):
                report = GeneratedReport.model_validate(report)

        completed = list(case.completed_steps or [])
        if "completed_steps" in changes:
            completed = list(changes["completed_steps"] or [])
            dangling = [step for step in completed if step not in report.next_steps]
            if dangling:
                raise InvariantViolation(
                    f"Completed steps are not in the report's next steps: {', '.join(dangling)}"
                )
        else:
            completed = reconcile_steps(completed, report.next_steps)

        # Validation done; apply
        if "student_name" in changes:
            case.student_name = changes["student_name"].strip()
        for field in ("class_name", "date", "incident_type", "raw_description", "is_confidential"):
            if field in changes:
                setattr(case, field, changes[field])
        if "status" in changes:
            case.status = CaseStatus(changes["status"])
        if "related_log_ids" in changes:
            case.related_log_ids = list(changes["related_log_ids"] or [])
        if "resolution_notes" in changes:
            case.resolution_notes = changes["resolution_notes"] or ""
        case.generated_report = report
        case.completed_steps = completed
        self._touch(case)

        self._audit(ctx, AuditAction.CASE_UPDATED, case.id, {"fields": sorted(changes)})
        self.db.commit()
        self.db.refresh(case)

        log.info("case_updated", case_id=case.id, actor=ctx.actor, fields=sorted(changes))
        return case

    def set_status(self, ctx: SessionContext, case_id: str, status: CaseStatus) -> SafeguardingCase:
        """
        Move a case to any status. All transitions are legal; Closed is not terminal.
        """
        case = self.get(case_id)
        new_status = CaseStatus(status)
        previous = case.status

        case.status = new_status
        self._touch(case)

        self._audit(ctx, AuditAction.STATUS_CHANGED, case.id, {
            "from": previous.value,
            "to": new_status.value,
        })
        self.db.commit()
        self.db.refresh(case)

        log.info("status_changed", case_id=case.id, actor=ctx.actor,
                 from_status=previous.value, to_status=new_status.value)
        return case

    def toggle_action_step(self, ctx: SessionContext, case_id: str, step: str) -> SafeguardingCase:
        """
        Flip one next step between completed and not completed.

        Refuses steps that are not in the current report, so completed_steps
        never holds a dangling entry.
        """
        case = self.get(case_id)
        if step not in case.generated_report.next_steps:
            raise InvariantViolation(f"Step is not one of this case's next steps: {step}")

        completed = list(case.completed_steps or [])
        if step in completed:
            completed = [s for s in completed if s != step]
            done = False
        else:
            completed.append(step)
            done = True

        case.completed_steps = completed
        self._touch(case)

        self._audit(ctx, AuditAction.STEP_TOGGLED, case.id, {"completed": done})
        self.db.commit()
        self.db.refresh(case)

        log.info("step_toggled", case_id=case.id, actor=ctx.actor, completed=done)
        return case

    def save_resolution_notes(self, ctx: SessionContext, case_id: str, notes: str) -> SafeguardingCase:
        """Replace the resolution notes (last write wins)."""
        case = self.get(case_id)
        case.resolution_notes = notes or ""
        self._touch(case)

        self._audit(ctx, AuditAction.RESOLUTION_NOTES_SAVED, case.id, {"length": len(case.resolution_notes)})
        self.db.commit()
        self.db.refresh(case)

        log.info("resolution_notes_saved", case_id=case.id, actor=ctx.actor)
        return case

    def regenerate(self, ctx: SessionContext, case_id: str, report: GeneratedReport) -> SafeguardingCase:
        """
        Replace the case's report wholesale.

        completed_steps is intersected with the new next_steps; stale entries are dropped.
        """
        if report is None:
            raise ValidationError("A case requires a generated report")
        case = self.get(case_id)

        before = list(case.completed_steps or [])
        case.generated_report = report
        case.completed_steps = reconcile_steps(before, report.next_steps)
        self._touch(case)

        self._audit(ctx, AuditAction.REPORT_REGENERATED, case.id, {
            "risk_level": report.risk_level.value,
            "dropped_steps": len(before) - len(case.completed_steps),
        })
        self.db.commit()
        self.db.refresh(case)

        log.info("report_regenerated", case_id=case.id, actor=ctx.actor)
        return case

    def regenerate_from_gateway(self, ctx: SessionContext, case_id: str) -> SafeguardingCase:
        """Regenerate using the case's own description and evidence."""
        case = self.get(case_id)
        report = self.generate_report(case.student_name, case.raw_description, case.related_log_ids or [])
        return self.regenerate(ctx, case_id, report)

    def delete(self, ctx: SessionContext, case_id: str) -> bool:
        """
        Hard-delete a case. Idempotent: an unknown id is not an error.

        Returns True when a case was removed.
        """
        case = self.db.query(SafeguardingCase).filter(SafeguardingCase.id == case_id).first()
        if not case:
            return False

        self.db.delete(case)
        self._audit(ctx, AuditAction.CASE_DELETED, case_id, None)
        self.db.commit()

        log.info("case_deleted", case_id=case_id, actor=ctx.actor)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_cases(
        self,
        status: Optional[CaseStatus] = None,
        incident_type: Optional[str] = None,
        author: Optional[str] = None,
        search: Optional[str] = None,
        student_name: Optional[str] = None,
        class_name: Optional[str] = None
    ) -> List[SafeguardingCase]:
        """
        Cases matching every given filter, newest first.

        search matches the student name or the DSL summary, case-insensitively.
        """
        query = self.db.query(SafeguardingCase)
        if status:
            query = query.filter(SafeguardingCase.status == CaseStatus(status))
        if incident_type:
            query = query.filter(SafeguardingCase.incident_type == incident_type)
        if author:
            query = query.filter(SafeguardingCase.created_by == author)
        if student_name:
            query = query.filter(SafeguardingCase.student_name == student_name)
        if class_name:
            query = query.filter(SafeguardingCase.class_name == class_name)

        cases = query.order_by(SafeguardingCase.created_at.desc()).all()

        if search:
            term = search.lower()
            cases = [
                c for c in cases
                if term in c.student_name.lower() or term in c.generated_report.dsl_summary.lower()
            ]
        return cases

    def case_stats(self, cases: Optional[List[SafeguardingCase]] = None) -> CaseStats:
        if cases is None:
            cases = self.list_cases()
        return CaseStats(
            total=len(cases),
            open=sum(1 for c in cases if c.status == CaseStatus.OPEN),
            investigating=sum(1 for c in cases if c.status == CaseStatus.INVESTIGATING),
            closed=sum(1 for c in cases if c.status == CaseStatus.CLOSED),
            high_risk=sum(1 for c in cases if is_high_risk(c.generated_report.risk_level)),
        )

    def facets(self) -> Dict[str, List[str]]:
        """Distinct incident types and authors, for filter choices."""
        cases = self.db.query(SafeguardingCase.incident_type, SafeguardingCase.created_by).all()
        return {
            "incident_types": sorted({incident_type for incident_type, _ in cases if incident_type}),
            "authors": sorted({author for _, author in cases if author}),
        }

    def redacted_report(self, case: SafeguardingCase, enabled: bool) -> GeneratedReport:
        """The case's report with third-party names redacted from every text field."""
        report = case.generated_report
        if not enabled:
            return report

        roster = self.roster_names()

        def r(text: str) -> str:
            return redact_text(text, case.student_name, roster, True)

        return report.model_copy(update={
            "dsl_summary": r(report.dsl_summary),
            "chronology": [r(t) for t in report.chronology],
            "key_evidence": [r(t) for t in report.key_evidence],
            "evidence_analysis": r(report.evidence_analysis),
            "policies_applied": list(report.policies_applied),
            "witness_questions": [r(t) for t in report.witness_questions],
            "next_steps": [r(t) for t in report.next_steps],
        })

    def export_text(self, ctx: SessionContext, case_id: str, redact: bool = False) -> str:
        """
        Render the plain-text confidential report used for copy/print disclosure.

        The disclosure itself is audited, with whether redaction was on.
        """
        case = self.get(case_id)
        roster = self.roster_names() if redact else []

        def r(text: str) -> str:
            return redact_text(text, case.student_name, roster, redact)

        report = case.generated_report
        lines = [
            "CONFIDENTIAL SAFEGUARDING REPORT",
            f"Student: {case.student_name}",
            f"Date: {case.date.isoformat()}",
            f"Incident: {case.incident_type}",
            f"Risk Level: {report.risk_level.value}",
            f"Status: {case.status.value}",
            "",
            "DSL SUMMARY:",
            r(report.dsl_summary),
            "",
            "CHRONOLOGY:",
        ]
        lines.extend(f"- {r(entry)}" for entry in report.chronology)
        lines.extend(["", "NEXT STEPS:"])
        lines.extend(f"- {r(step)}" for step in report.next_steps)
        lines.extend(["", "RESOLUTION NOTES:", r(case.resolution_notes) or "N/A"])

        self._audit(ctx, AuditAction.CASE_EXPORTED, case.id, {"redacted": bool(redact)})
        self.db.commit()

        log.info("case_exported", case_id=case.id, actor=ctx.actor, redacted=bool(redact))
        return "\n".join(lines) + "\n"

    def audit_trail(self, case_id: str) -> List[AuditEvent]:
        """Audit events for a case, oldest first. Read-only."""
        return (
            self.db.query(AuditEvent)
            .filter(AuditEvent.case_id == case_id)
            .order_by(AuditEvent.id.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _stamp(self, floor: Optional[datetime] = None) -> datetime:
        """
        Next timestamp for this lifecycle, strictly later than every stamp it
        has handed out and than floor.
        """
        now = utcnow()
        for previous in (self._last_stamp, floor):
            if previous is not None and now <= previous:
                now = previous + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    def _touch(self, case: SafeguardingCase) -> None:
        """Stamp updated_at, strictly later than the case's previous stamp."""
        case.updated_at = self._stamp(case.updated_at)

    def _audit(self, ctx: SessionContext, action: str, case_id: str, payload: Optional[dict]) -> None:
        self.db.add(AuditEvent(
            actor=ctx.actor,
            action=action,
            case_id=case_id,
            payload_json=payload,
        ))
