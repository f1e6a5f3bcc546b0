"""
Failures raised by the case engine.

All of them are local and synchronous: raised to the immediate caller,
never retried, and raised before anything is committed.
"""


class CaseError(Exception):
    """Base class for case engine failures."""
    kind = "case_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(CaseError):
    """Required input missing at create/update time. No state change."""
    kind = "validation_error"


class NotFoundError(CaseError):
    """Operation against an unknown case id. No state change."""
    kind = "not_found"

    def __init__(self, case_id: str):
        self.case_id = case_id
        super().__init__(f"Safeguarding case not found: {case_id}")


class InvariantViolation(CaseError):
    """The operation would break a case invariant, e.g. a dangling completed step."""
    kind = "invariant_violation"


class GatewayError(CaseError):
    """
    The report generation gateway failed.

    category is one of the GatewayError.* constants and is surfaced verbatim;
    a failed generation is never replaced with a fabricated report.
    """
    kind = "gateway_error"

    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    SAFETY_BLOCK = "safety_block"
    PARSE_FAILURE = "parse_failure"

    def __init__(self, category: str, message: str):
        self.category = category
        super().__init__(message)
