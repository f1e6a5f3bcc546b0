"""Tests for the Gemini report gateway, over a mocked HTTP transport."""
import json
from datetime import date

import httpx
import pytest

from sentinel.models.domain import MeetingLog
from sentinel.models.enums import LogSentiment, MeetingType, RiskLevel
from sentinel.services.errors import GatewayError
from sentinel.services.gateway import GeminiReportGateway, build_prompt, parse_report

REPORT_JSON = {
    "dslSummary": "Jane Roe had her lunch taken.",
    "chronology": ["12:10 Incident"],
    "keyEvidence": ["Log of 2024-10-14"],
    "evidenceAnalysis": "Escalating pattern at lunch.",
    "policiesApplied": ["Anti-Bullying"],
    "witnessQuestions": ["What did you see?"],
    "nextSteps": ["Notify DSL"],
    "riskLevel": "High",
    "sentiment": "Serious",
}


def gemini_body(payload=REPORT_JSON, **candidate):
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return {"candidates": [dict({"content": {"parts": [{"text": content}]}, "finishReason": "STOP"}, **candidate)]}


def make_gateway(handler, api_key="test-key"):
    return GeminiReportGateway(
        api_key=api_key,
        model="gemini-test",
        base_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(handler),
    )


def respond(status_code, body=None):
    def handler(request):
        return httpx.Response(status_code, json=body if body is not None else {})
    return handler


def category_of(gateway):
    with pytest.raises(GatewayError) as exc_info:
        gateway.generate("Jane Roe", "Lunch taken", [])
    return exc_info.value.category


class TestGeminiGateway:

    def test_success_parses_report(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_body())

        report = make_gateway(handler).generate("Jane Roe", "Lunch taken", [])

        assert report.risk_level == RiskLevel.HIGH
        assert report.next_steps == ["Notify DSL"]
        assert report.evidence_analysis == "Escalating pattern at lunch."
        assert seen["url"].startswith("https://gemini.test/v1beta/models/gemini-test:generateContent")
        assert "key=test-key" in seen["url"]
        assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"
        assert "Jane Roe" in seen["body"]["contents"][0]["parts"][0]["text"]

    def test_missing_api_key_is_auth_error(self):
        def handler(request):
            raise AssertionError("no request should be sent")

        assert category_of(make_gateway(handler, api_key="")) == GatewayError.AUTH

    @pytest.mark.parametrize("status_code, category", [
        (401, GatewayError.AUTH),
        (403, GatewayError.AUTH),
        (429, GatewayError.RATE_LIMIT),
        (504, GatewayError.TIMEOUT),
        (500, GatewayError.NETWORK),
        (503, GatewayError.NETWORK),
    ])
    def test_http_status_categories(self, status_code, category):
        assert category_of(make_gateway(respond(status_code))) == category

    def test_connection_error_is_network(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert category_of(make_gateway(handler)) == GatewayError.NETWORK

    def test_read_timeout_is_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        assert category_of(make_gateway(handler)) == GatewayError.TIMEOUT

    def test_blocked_prompt_is_safety_block(self):
        body = {"promptFeedback": {"blockReason": "SAFETY"}}
        assert category_of(make_gateway(respond(200, body))) == GatewayError.SAFETY_BLOCK

    def test_safety_finish_reason_is_safety_block(self):
        body = gemini_body(finishReason="SAFETY")
        assert category_of(make_gateway(respond(200, body))) == GatewayError.SAFETY_BLOCK

    @pytest.mark.parametrize("body", [
        {"candidates": []},
        gemini_body(""),
        gemini_body("this is not json"),
        gemini_body({"dslSummary": "Missing the rest"}),
        gemini_body(dict(REPORT_JSON, riskLevel="Extreme")),
        [],
        "oops",
        {"candidates": ["x"]},
        {"candidates": "x"},
        {"candidates": [{"content": "x"}]},
        {"candidates": [{"content": {"parts": ["x", {"text": 3}]}}]},
    ])
    def test_malformed_content_is_parse_failure(self, body):
        assert category_of(make_gateway(respond(200, body))) == GatewayError.PARSE_FAILURE

    def test_non_json_response_is_parse_failure(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        assert category_of(make_gateway(handler)) == GatewayError.PARSE_FAILURE


class TestPromptAndParsing:

    def test_prompt_lists_evidence(self):
        evidence = [
            MeetingLog(id="L2", date=date(2024, 10, 14), attendees=["Jane Roe"],
                       meeting_type=MeetingType.BEHAVIORAL, sentiment=LogSentiment.CONCERNED,
                       notes="Upset after lunch.")
        ]
        prompt = build_prompt("Jane Roe", "Lunch taken", evidence)

        assert "student: Jane Roe" in prompt
        assert '"Lunch taken"' in prompt
        assert "[LOG DATE: 2024-10-14 | TYPE: Behavioral Intervention] Notes: Upset after lunch. (Sentiment: Concerned)" in prompt

    def test_prompt_without_evidence(self):
        assert "No past logs attached." in build_prompt("Jane Roe", "Lunch taken", [])

    def test_missing_evidence_analysis_defaults_empty(self):
        payload = dict(REPORT_JSON)
        del payload["evidenceAnalysis"]
        assert parse_report(payload).evidence_analysis == ""

    def test_unknown_fields_ignored(self):
        report = parse_report(dict(REPORT_JSON, extra="ignored"))
        assert report.dsl_summary == "Jane Roe had her lunch taken."
