"""Error taxonomy for the split-payment facilitator.

Every error carries a stable ``error_code`` (used as the ``error`` field of
JSON error bodies) and the HTTP status the facilitator answers with.
"""

from __future__ import annotations

from typing import Any


class X402SplitError(Exception):
    """Base class for all facilitator and client errors."""

    error_code = "internal_error"
    status_code = 500

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.error_code)
        self.message = message or self.error_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_code, "message": self.message}


# --- Validation errors (4xx) ---


class InvalidRequest(X402SplitError):
    """Malformed or missing request fields."""

    error_code = "invalid_request"
    status_code = 400


class MalformedTransaction(X402SplitError):
    """Transaction bytes could not be decoded."""

    error_code = "malformed_transaction"
    status_code = 400


class EmptyTransaction(X402SplitError):
    """Transaction decoded to zero instructions."""

    error_code = "empty_transaction"
    status_code = 400


class InvalidSplitConfig(X402SplitError):
    """Split list is inconsistent (percentages over 100, bad recipient, ...)."""

    error_code = "invalid_split_config"
    status_code = 400


class SignerRejected(X402SplitError):
    """The fee-abstraction signer answered but refused the transaction."""

    error_code = "transaction_rejected"
    status_code = 400


# --- Upstream errors (5xx) ---


class UpstreamSignerUnavailable(X402SplitError):
    """The fee-abstraction signer could not be reached or timed out."""

    error_code = "upstream_signer_unavailable"
    status_code = 500

    def to_dict(self) -> dict[str, Any]:
        # Signer endpoint details stay in the logs.
        return {"error": self.error_code, "message": "Fee abstraction service unavailable"}


class SigningFailure(X402SplitError):
    """The signer returned a transaction without a usable signature."""

    error_code = "signing_failure"
    status_code = 500


# --- Client-side errors ---


class UnexpectedResponse(X402SplitError):
    """A response matched neither the success nor the payment-required shape."""

    error_code = "unexpected_response"
    status_code = 502

    def __init__(self, message: str = "", status: int | None = None, **details: Any) -> None:
        super().__init__(message, **details)
        self.status = status


class FacilitatorUnavailable(X402SplitError):
    """The facilitator service could not be reached."""

    error_code = "facilitator_unavailable"
    status_code = 503


class PaymentFlowError(X402SplitError):
    """A client payment flow ended in the FAILED state.

    Attributes:
        state: The flow state that was active when the failure happened.
        reason: The ``error_code`` of the underlying error.
    """

    error_code = "payment_flow_failed"

    def __init__(self, message: str, state: Any, reason: str) -> None:
        super().__init__(message, state=state, reason=reason)
        self.state = state
        self.reason = reason


ERRORS_BY_CODE: dict[str, type[X402SplitError]] = {
    cls.error_code: cls
    for cls in (
        InvalidRequest,
        MalformedTransaction,
        EmptyTransaction,
        InvalidSplitConfig,
        SignerRejected,
        UpstreamSignerUnavailable,
        SigningFailure,
        UnexpectedResponse,
        FacilitatorUnavailable,
    )
}


def error_from_body(body: dict[str, Any], status: int) -> X402SplitError:
    """Rebuild a typed error from a facilitator JSON error body."""
    code = str(body.get("error", ""))
    message = str(body.get("message", "")) or f"Facilitator returned HTTP {status}"
    cls = ERRORS_BY_CODE.get(code)
    if cls is None:
        return UnexpectedResponse(message, status=status)
    return cls(message)
