"""Response models for the Stripe webhook endpoint."""

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Standard webhook acknowledgement."""

    received: bool
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # "ready", "partial_failure", "degraded"
    forwarded: bool = False
    message: str | None = None
