"""The generated report value object embedded in every case."""
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from sentinel.models.enums import RiskLevel, ReportSentiment


class GeneratedReport(BaseModel):
    """
    Structured case file produced by the report generation gateway.

    Immutable: a regeneration replaces the whole value, it is never patched.
    """
    model_config = ConfigDict(frozen=True)

    dsl_summary: str
    chronology: List[str] = Field(default_factory=list)
    key_evidence: List[str] = Field(default_factory=list)
    evidence_analysis: str = ""
    policies_applied: List[str] = Field(default_factory=list)
    witness_questions: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    risk_level: RiskLevel
    sentiment: ReportSentiment
