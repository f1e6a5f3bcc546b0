"""
Audit log model - append-only record of every case action.

Each row is (timestamp, actor, action, case_id) plus a small payload.
The service layer exposes no way to edit or delete a row once written.
"""
from sqlalchemy import Column, String, Integer, DateTime, JSON

from sentinel.database import Base
from sentinel.models.domain import utcnow


class AuditEvent(Base):
    """
    Immutable audit event for reconstructing who did what to a case.

    Invariants:
    - Once written, never edited or deleted
    - Append-only; survives deletion of the case it refers to
    - Never carries case narrative text, identifiers and flags only
    """
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    actor = Column(String, nullable=False)
    action = Column(String, nullable=False, index=True)
    case_id = Column(String, nullable=False, index=True)  # No FK: rows outlive hard deletes
    payload_json = Column(JSON, nullable=True)


class AuditAction:
    """Enumeration of audit actions."""
    CASE_CREATED = "case_created"
    CASE_UPDATED = "case_updated"
    CASE_DELETED = "case_deleted"
    STATUS_CHANGED = "status_changed"
    STEP_TOGGLED = "step_toggled"
    RESOLUTION_NOTES_SAVED = "resolution_notes_saved"
    REPORT_REGENERATED = "report_regenerated"
    CASE_EXPORTED = "case_exported"
