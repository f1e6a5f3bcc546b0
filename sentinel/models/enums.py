"""Enums for the safeguarding engine - these define the valid values for states and ratings."""
from enum import Enum


class CaseStatus(str, Enum):
    """The three case states. Every transition between them is legal."""
    OPEN = "Open"
    INVESTIGATING = "Investigating"
    CLOSED = "Closed"


class RiskLevel(str, Enum):
    """Risk level assessed on a generated report, lowest first."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class ReportSentiment(str, Enum):
    """Urgency of a generated report, most urgent first."""
    CRITICAL = "Critical"
    SERIOUS = "Serious"
    CAUTIONARY = "Cautionary"
    ROUTINE = "Routine"


class LogSentiment(str, Enum):
    """Sentiment recorded against a meeting log."""
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    CONCERNED = "Concerned"


class EvidenceFilter(str, Enum):
    """Narrowing applied to candidate evidence."""
    ALL = "ALL"
    CONCERNS_ONLY = "CONCERNS_ONLY"


class MeetingType(str, Enum):
    IEP = "IEP Meeting"
    PARENT_TEACHER = "Parent-Teacher Conference"
    BEHAVIORAL = "Behavioral Intervention"
    ACADEMIC = "Academic Check-in"
    PLANNING = "Lesson Planning"
    OTHER = "Other"
