"""
Report generation gateway.

The lifecycle treats report generation as a black box:
(student name, description, evidence) -> GeneratedReport, or a GatewayError.
GeminiReportGateway is the production implementation over the Gemini REST API.
"""
import json
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

import httpx
import pydantic
import structlog

from sentinel.config import settings
from sentinel.models.report import GeneratedReport
from sentinel.services.errors import GatewayError

log = structlog.get_logger(__name__)

# Gemini field name -> GeneratedReport field name
REPORT_FIELDS = {
    "dslSummary": "dsl_summary",
    "chronology": "chronology",
    "keyEvidence": "key_evidence",
    "evidenceAnalysis": "evidence_analysis",
    "policiesApplied": "policies_applied",
    "witnessQuestions": "witness_questions",
    "nextSteps": "next_steps",
    "riskLevel": "risk_level",
    "sentiment": "sentiment",
}

_STRING_LIST = {"type": "ARRAY", "items": {"type": "STRING"}}

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "dslSummary": {"type": "STRING"},
        "chronology": _STRING_LIST,
        "keyEvidence": _STRING_LIST,
        "evidenceAnalysis": {"type": "STRING"},
        "policiesApplied": _STRING_LIST,
        "witnessQuestions": _STRING_LIST,
        "nextSteps": _STRING_LIST,
        "riskLevel": {"type": "STRING", "enum": ["Low", "Medium", "High", "Critical"]},
        "sentiment": {"type": "STRING", "enum": ["Critical", "Serious", "Cautionary", "Routine"]},
    },
    "required": list(REPORT_FIELDS),
}

PROMPT_TEMPLATE = """You are a Designated Safeguarding Lead (DSL) and expert in school behavioural compliance.

A teacher has reported an incident involving student: {student_name}.

CURRENT INCIDENT DESCRIPTION:
"{description}"

ATTACHED EVIDENCE (Past Logs & Interactions):
{evidence}

Generate a formal Safeguarding & Behaviour Case File.
1. DSL Summary: professional, objective summary suitable for a legal file.
2. Chronology: a timeline of events from the current incident.
3. Key Evidence: specific quotes, dates of previous behaviour, or patterns from the attached evidence and the description that substantiate this case.
4. Evidence Analysis: one analytical paragraph on recurring patterns, escalation, or isolation.
5. Policies Applied: relevant school policies (e.g. Anti-Bullying, Physical Intervention, Peer-on-Peer Abuse, Online Safety, Attendance).
6. Witness Questions: 3-5 specific, non-leading questions for witnesses.
7. Next Steps: immediate and long-term actions required.
8. Risk Level: based on the description and any escalating pattern in the evidence.
9. Sentiment: the urgency of the case."""


def format_evidence(evidence: Sequence) -> str:
    """Render evidence logs as prompt lines, one per log."""
    if not evidence:
        return "No past logs attached."
    lines = []
    for record in evidence:
        meeting_type = getattr(record.meeting_type, "value", record.meeting_type)
        sentiment = getattr(record.sentiment, "value", record.sentiment)
        lines.append(
            f"[LOG DATE: {record.date} | TYPE: {meeting_type}] Notes: {record.notes} (Sentiment: {sentiment})"
        )
    return "\n".join(lines)


def build_prompt(student_name: str, description: str, evidence: Sequence) -> str:
    return PROMPT_TEMPLATE.format(
        student_name=student_name,
        description=description,
        evidence=format_evidence(evidence),
    )


def parse_report(payload: dict) -> GeneratedReport:
    """Turn a Gemini JSON object into a GeneratedReport, or raise a parse_failure."""
    if not isinstance(payload, dict):
        raise GatewayError(GatewayError.PARSE_FAILURE, "Report payload is not a JSON object")
    fields = {REPORT_FIELDS[key]: value for key, value in payload.items() if key in REPORT_FIELDS}
    if fields.get("evidence_analysis") is None:
        fields.pop("evidence_analysis", None)
    try:
        return GeneratedReport.model_validate(fields)
    except pydantic.ValidationError as e:
        raise GatewayError(GatewayError.PARSE_FAILURE, f"Report did not match the expected shape: {e}")


class ReportGateway(ABC):
    """Contract for the external report generation collaborator."""

    @abstractmethod
    def generate(self, student_name: str, description: str, evidence: Sequence) -> GeneratedReport:
        """
        Produce a structured report.

        Raises:
            GatewayError: on any failure. Callers must not substitute a report.
        """


class GeminiReportGateway(ReportGateway):
    """Generates case reports with Google Gemini's generateContent endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout = timeout or settings.gemini_timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def generate(self, student_name: str, description: str, evidence: Sequence) -> GeneratedReport:
        if not self.api_key:
            raise GatewayError(GatewayError.AUTH, "Report generation is not configured: no API key")

        request_body = {
            "contents": [{"parts": [{"text": build_prompt(student_name, description, evidence)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        url = f"{self.base_url}/models/{self.model}:generateContent"

        log.info("report_generation_requested", model=self.model, evidence_count=len(evidence))
        try:
            with self._client() as client:
                response = client.post(url, params={"key": self.api_key}, json=request_body)
        except httpx.TimeoutException as e:
            raise GatewayError(GatewayError.TIMEOUT, f"Report generation timed out: {e}")
        except httpx.HTTPError as e:
            raise GatewayError(GatewayError.NETWORK, f"Report generation request failed: {e}")

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError:
            raise GatewayError(GatewayError.PARSE_FAILURE, "Gateway response was not JSON")

        report = parse_report(self._extract_payload(data))
        log.info("report_generation_succeeded", model=self.model, risk_level=report.risk_level.value)
        return report

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status == 200:
            return
        log.warning("report_generation_failed", status_code=status)
        if status in (401, 403):
            raise GatewayError(GatewayError.AUTH, f"Gateway rejected credentials ({status})")
        if status == 429:
            raise GatewayError(GatewayError.RATE_LIMIT, "Gateway rate limit exceeded")
        if status in (408, 504):
            raise GatewayError(GatewayError.TIMEOUT, f"Gateway timed out ({status})")
        raise GatewayError(GatewayError.NETWORK, f"Gateway request failed ({status})")

    def _extract_payload(self, data: Any) -> dict:
        """
        Pull the report JSON out of a generateContent response body.

        Any body that is not the documented shape is a parse_failure.
        """
        if not isinstance(data, dict):
            raise GatewayError(GatewayError.PARSE_FAILURE, "Gateway response was not a JSON object")

        feedback = data.get("promptFeedback") or {}
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            raise GatewayError(GatewayError.SAFETY_BLOCK, f"Prompt blocked: {feedback['blockReason']}")

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            raise GatewayError(GatewayError.PARSE_FAILURE, "Gateway returned no candidates")

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise GatewayError(GatewayError.PARSE_FAILURE, "Gateway candidate was not a JSON object")
        if candidate.get("finishReason") in ("SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT"):
            raise GatewayError(GatewayError.SAFETY_BLOCK, "Response blocked by safety filters")

        content = candidate.get("content") or {}
        parts: List[dict] = (content.get("parts") or []) if isinstance(content, dict) else []
        if not isinstance(parts, list):
            parts = []
        text = "".join(
            part["text"] for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ).strip()
        if not text:
            raise GatewayError(GatewayError.PARSE_FAILURE, "Gateway returned empty content")

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise GatewayError(GatewayError.PARSE_FAILURE, f"Gateway content was not valid JSON: {e}")


def get_gateway() -> ReportGateway:
    """Dependency for FastAPI endpoints to get the report gateway."""
    return GeminiReportGateway()
