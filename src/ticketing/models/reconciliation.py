"""Reconciliation models and the per-delivery state machine.

State diagram for one webhook delivery:

    RECEIVED ──► VERIFIED ──► EXPANDED ──► JOINED ──► READY
        │            │                        │
        │ bad sig    │ other event type       │ fallback used
        ▼            │ or re-fetch failed     ▼
    REJECTED         └──────► DEGRADED    PARTIAL_FAILURE

READY, PARTIAL_FAILURE and DEGRADED are acknowledged to Stripe with 200.
REJECTED is the only outcome that answers 400.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ReconciliationStatus(str, Enum):
    """States of a single webhook delivery."""

    RECEIVED = "received"
    VERIFIED = "verified"
    EXPANDED = "expanded"
    JOINED = "joined"
    READY = "ready"
    REJECTED = "rejected"
    DEGRADED = "degraded"
    PARTIAL_FAILURE = "partial_failure"

    def can_transition_to(self, target: "ReconciliationStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _TRANSITIONS.get(self, set())

    def is_terminal(self) -> bool:
        return len(_TRANSITIONS.get(self, set())) == 0

    def should_forward(self) -> bool:
        """Whether a delivery ending in this state carries a payload to forward."""
        return self in {ReconciliationStatus.READY, ReconciliationStatus.PARTIAL_FAILURE}


_TRANSITIONS: dict[ReconciliationStatus, set[ReconciliationStatus]] = {
    ReconciliationStatus.RECEIVED: {ReconciliationStatus.VERIFIED, ReconciliationStatus.REJECTED},
    ReconciliationStatus.VERIFIED: {ReconciliationStatus.EXPANDED, ReconciliationStatus.DEGRADED},
    ReconciliationStatus.EXPANDED: {ReconciliationStatus.JOINED},
    ReconciliationStatus.JOINED: {ReconciliationStatus.READY, ReconciliationStatus.PARTIAL_FAILURE},
    ReconciliationStatus.READY: set(),
    ReconciliationStatus.REJECTED: set(),
    ReconciliationStatus.DEGRADED: set(),
    ReconciliationStatus.PARTIAL_FAILURE: set(),
}


class InvalidTransitionError(Exception):
    """Raised when the reconciliation state machine is driven out of order."""

    def __init__(self, current: ReconciliationStatus, target: ReconciliationStatus):
        super().__init__(f"Cannot transition from {current.value} to {target.value}")
        self.current = current
        self.target = target


class ReconciliationRun:
    """Tracks one delivery through the state machine."""

    def __init__(self) -> None:
        self.status = ReconciliationStatus.RECEIVED
        self.history: list[ReconciliationStatus] = [ReconciliationStatus.RECEIVED]

    def advance(self, target: ReconciliationStatus) -> None:
        """Move to ``target``.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
        """
        if not self.status.can_transition_to(target):
            raise InvalidTransitionError(self.status, target)
        self.status = target
        self.history.append(target)


class ReconciledLineItem(BaseModel):
    """One ticket line sent to automation.

    Money fields come from Stripe; sku and date come from the side channel
    when ``source`` is ``side_channel``.
    """

    sku: str
    quantity: int
    unit_amount: int | None = Field(default=None, description="Unit price in minor units")
    currency: str | None = None
    date: str | None = None
    price_ref: str | None = None
    product_ref: str | None = None
    description: str = "Item"
    source: str = Field(default="side_channel", description="side_channel or fallback")


class AutomationPayload(BaseModel):
    """JSON body forwarded to the automation endpoint."""

    session_id: str
    mode: str | None = None
    payment_status: str | None = None
    amount_total: int | None = None
    amount_subtotal: int | None = None
    currency: str | None = None
    customer_email: str | None = None
    customer_name: str | None = None
    date: str | None = None
    line_items: list[ReconciledLineItem]
    metadata: dict[str, Any] = Field(default_factory=dict, description="Raw session metadata for audit")
    partial: bool = Field(default=False, description="True when any line used fallback data")


class ReconciliationOutcome(BaseModel):
    """Terminal result of processing one delivery."""

    status: ReconciliationStatus
    event_id: str | None = None
    event_type: str | None = None
    session_id: str | None = None
    payload: AutomationPayload | None = None
    degraded_items: int = 0
    message: str | None = None
    history: list[ReconciliationStatus] = Field(default_factory=list)


class ForwardResult(BaseModel):
    """Outcome of one delivery attempt to the automation endpoint."""

    delivered: bool
    status_code: int | None = None
    error: str | None = None
