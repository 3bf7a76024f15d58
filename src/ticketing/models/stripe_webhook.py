"""Verified Stripe webhook event model."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class WebhookEvent(BaseModel):
    """A webhook delivery that has passed signature verification.

    Only constructed by StripeService.verify_webhook_signature; nothing in the
    reconciliation path accepts an unverified payload.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    type: str = Field(
        ...,
        description="Stripe event type",
        examples=["checkout.session.completed", "payment_intent.created"],
    )
    session_ref: str | None = Field(
        default=None,
        description="ID of the event's data object (cs_xxx for checkout sessions)",
    )
    signature: str = Field(..., description="Stripe-Signature header as received")
    raw_bytes: bytes = Field(..., description="Exact request body that was verified")
    data_object: dict[str, Any] = Field(default_factory=dict)
    created: int | None = None

    @classmethod
    def from_payload(cls, event: dict[str, Any], *, signature: str, raw_bytes: bytes) -> "WebhookEvent":
        """Build from the parsed JSON body of a verified delivery."""
        data = event.get("data")
        data_object = data.get("object") if isinstance(data, dict) else None
        if not isinstance(data_object, dict):
            data_object = {}
        session_ref = data_object.get("id")
        return cls(
            event_id=str(event.get("id") or ""),
            type=str(event.get("type") or ""),
            session_ref=session_ref if isinstance(session_ref, str) else None,
            signature=signature,
            raw_bytes=raw_bytes,
            data_object=data_object,
            created=event.get("created") if isinstance(event.get("created"), int) else None,
        )

    @property
    def is_checkout_completed(self) -> bool:
        return self.type == CHECKOUT_SESSION_COMPLETED
