"""Pydantic models for the ticket checkout pipeline."""

from .cart import (
    MAX_QUANTITY,
    MIN_QUANTITY,
    CheckoutRequest,
    CheckoutSessionResult,
    NormalizedCart,
    ResolvedLineItem,
    SideChannelRecord,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    BadSignature,
    ConfigurationError,
    ErrorCode,
    ErrorResponse,
    ForwardingFailure,
    GatewayRejected,
    InvalidPayload,
    NoValidItems,
    TicketingError,
    UnknownSku,
    redact_secrets,
)
from .reconciliation import (
    AutomationPayload,
    ForwardResult,
    InvalidTransitionError,
    ReconciledLineItem,
    ReconciliationOutcome,
    ReconciliationRun,
    ReconciliationStatus,
)
from .stripe_webhook import CHECKOUT_SESSION_COMPLETED, WebhookEvent

__all__ = [
    # Cart
    "MAX_QUANTITY",
    "MIN_QUANTITY",
    "CheckoutRequest",
    "CheckoutSessionResult",
    "NormalizedCart",
    "ResolvedLineItem",
    "SideChannelRecord",
    # Errors
    "BadSignature",
    "ConfigurationError",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "ErrorCode",
    "ErrorResponse",
    "ForwardingFailure",
    "GatewayRejected",
    "InvalidPayload",
    "NoValidItems",
    "TicketingError",
    "UnknownSku",
    "redact_secrets",
    # Reconciliation
    "AutomationPayload",
    "ForwardResult",
    "InvalidTransitionError",
    "ReconciledLineItem",
    "ReconciliationOutcome",
    "ReconciliationRun",
    "ReconciliationStatus",
    # Stripe
    "CHECKOUT_SESSION_COMPLETED",
    "WebhookEvent",
]
