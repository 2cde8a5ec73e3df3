"""
Error taxonomy for the docket engine.

Every failure either retries (transport) or leaves explicit state behind;
`user_message` is the text surfaced to the player.
"""

from typing import Any, Optional


class DocketError(Exception):
    code = "DOCKET_ERROR"
    default_user_message = "Something went wrong with the docket. Please try again."

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message
        self.context = context or {}


class PayloadValidationError(DocketError):
    """Model returned a structurally invalid payload. Nothing was applied."""
    code = "INVALID_RESPONSE"
    default_user_message = "The AI returned an incomplete response. Please try again."


class ComplianceRejection(DocketError):
    """Model text referenced off-docket or inadmissible material. Recorded; phase stays open."""
    code = "NON_COMPLIANT"
    default_user_message = "Verdict rejected for off-docket or inadmissible references."


class TurnViolation(DocketError):
    code = "TURN_VIOLATION"
    default_user_message = "It is not your turn to file this submission."


class IdConflict(DocketError):
    code = "ID_CONFLICT"
    default_user_message = "Strike results referenced jurors outside the docket. Please retry."

    def __init__(self, message: str, reason: str, offending_id: Any, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason
        self.offending_id = offending_id


class TransportError(DocketError):
    code = "REQUEST_FAILED"
    default_user_message = "The AI request failed. Please try again."

    USER_MESSAGES = {
        "network": "Could not reach the AI service. Check your connection and try again.",
        "timeout": "The AI service took too long to respond. Please try again.",
        "rate_limited": "The AI service is rate limiting requests. Wait a moment and retry.",
        "auth": "The AI service rejected the API key. Please check configuration.",
        "server": "The AI service had an internal error. Please try again.",
        "client": "The AI service rejected the request.",
    }

    def __init__(self, message: str, reason: str, status_code: Optional[int] = None, **kwargs):
        kwargs.setdefault("user_message", self.USER_MESSAGES.get(reason))
        super().__init__(message, **kwargs)
        self.reason = reason
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.reason in ("network", "timeout", "rate_limited", "server")


class ConfigError(DocketError):
    code = "CONFIG_MISSING"
    default_user_message = "LLM API key is missing. Please check configuration."


class PhaseError(DocketError):
    """Action is not valid for the docket's current phase."""
    code = "PHASE_ERROR"
    default_user_message = "That action is not available right now."


class ActionPending(PhaseError):
    code = "ACTION_PENDING"
    default_user_message = "The court is still considering the previous request."
