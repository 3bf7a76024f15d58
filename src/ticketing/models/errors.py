"""Standard error codes for the ticket checkout pipeline.

Every failure that can leave the pipeline is an ErrorCode. Services raise
the TicketingError subclass for the code; the API layer converts it into an
ErrorResponse with a matching HTTP status.
"""

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Error codes for checkout creation and webhook reconciliation."""

    # Cart error codes (ERR_CART_001-ERR_CART_003)
    INVALID_PAYLOAD = "ERR_CART_001"
    UNKNOWN_SKU = "ERR_CART_002"
    NO_VALID_ITEMS = "ERR_CART_003"

    # Deployment configuration
    CONFIGURATION_ERROR = "ERR_CONFIG_001"

    # Stripe error codes (ERR_STRIPE_001-ERR_STRIPE_002)
    BAD_SIGNATURE = "ERR_STRIPE_001"
    GATEWAY_REJECTED = "ERR_STRIPE_002"

    # Automation forwarding
    FORWARDING_FAILURE = "ERR_AUTOMATION_001"


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_PAYLOAD: "Invalid payload: items[] required",
    ErrorCode.UNKNOWN_SKU: "Unknown ticket SKU",
    ErrorCode.NO_VALID_ITEMS: "None of the submitted items could be priced",
    ErrorCode.CONFIGURATION_ERROR: "Service is not configured",
    ErrorCode.BAD_SIGNATURE: "Invalid webhook signature",
    ErrorCode.GATEWAY_REJECTED: "Payment gateway rejected the request",
    ErrorCode.FORWARDING_FAILURE: "Automation endpoint did not accept the payload",
}

# Recovery hints returned to clients and operators
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.INVALID_PAYLOAD: "Send a JSON body with a non-empty items list of {sku, quantity, date}",
    ErrorCode.UNKNOWN_SKU: "Reload the ticket catalog and resubmit the cart",
    ErrorCode.NO_VALID_ITEMS: "Reload the ticket catalog and resubmit the cart",
    ErrorCode.CONFIGURATION_ERROR: "Operator must set the missing deployment setting",
    ErrorCode.BAD_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.GATEWAY_REJECTED: "Try again or contact support",
    ErrorCode.FORWARDING_FAILURE: "Re-drive the session to the automation endpoint manually",
}

_SECRET_PATTERN = re.compile(r"\b(sk|rk|whsec)_(live|test)?_?[A-Za-z0-9]+")


def redact_secrets(text: str) -> str:
    """Mask Stripe API keys and webhook secrets embedded in a message.

    Args:
        text: Message that may contain credentials.

    Returns:
        The message with every credential replaced by its prefix and ``***``.
    """
    return _SECRET_PATTERN.sub(lambda m: f"{m.group(1)}_***", text)


class ErrorResponse(BaseModel):
    """JSON body returned for every client-facing failure."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error: str
    error_code: ErrorCode
    recovery: str
    details: Optional[dict[str, Any]] = None


class TicketingError(Exception):
    """Base exception for the checkout and reconciliation pipeline.

    Subclasses pin the ErrorCode; ``message`` overrides the default text when
    the caller has something more specific (e.g. the gateway's own message).
    """

    default_code: ErrorCode = ErrorCode.INVALID_PAYLOAD

    def __init__(
        self,
        details: Optional[dict[str, Any]] = None,
        *,
        message: Optional[str] = None,
        code: Optional[ErrorCode] = None,
    ):
        self.code = code or self.default_code
        self.message = message or ERROR_MESSAGES[self.code]
        self.recovery = ERROR_RECOVERY[self.code]
        self.details = details
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to the API error body."""
        return ErrorResponse(
            error=self.message,
            error_code=self.code,
            recovery=self.recovery,
            details=self.details,
        )


class InvalidPayload(TicketingError):
    """Client body is malformed beyond per-item recovery."""

    default_code = ErrorCode.INVALID_PAYLOAD


class UnknownSku(TicketingError):
    """SKU is not in the catalog after normalization."""

    default_code = ErrorCode.UNKNOWN_SKU

    def __init__(self, sku: str):
        super().__init__({"sku": sku}, message=f'No Stripe price mapped for SKU "{sku}"')
        self.sku = sku


class NoValidItems(TicketingError):
    """Every cart entry was dropped during normalization."""

    default_code = ErrorCode.NO_VALID_ITEMS


class ConfigurationError(TicketingError):
    """A required deployment setting is absent."""

    default_code = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, setting: str, *, message: Optional[str] = None):
        super().__init__({"setting": setting}, message=message or f"{setting} not set")
        self.setting = setting


class GatewayRejected(TicketingError):
    """Stripe refused or failed a request."""

    default_code = ErrorCode.GATEWAY_REJECTED

    def __init__(
        self,
        message: Optional[str] = None,
        stripe_error_code: Optional[str] = None,
    ):
        details = {"stripe_error_code": stripe_error_code} if stripe_error_code else None
        super().__init__(details, message=redact_secrets(message) if message else None)
        self.stripe_error_code = stripe_error_code


class BadSignature(TicketingError):
    """Webhook delivery failed authentication."""

    default_code = ErrorCode.BAD_SIGNATURE

    def __init__(self, reason: str):
        super().__init__({"reason": reason})
        self.reason = reason


class ForwardingFailure(TicketingError):
    """Automation endpoint was unreachable or answered non-2xx."""

    default_code = ErrorCode.FORWARDING_FAILURE
