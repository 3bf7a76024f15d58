"""Webhook endpoint for Stripe events.

No caller authentication: deliveries are authenticated by the Stripe-Signature
header. Once a delivery is verified the endpoint always answers 200, even if
reconciliation degraded or forwarding failed, so Stripe stops retrying. A
signature failure is the only 400.
"""

from fastapi import APIRouter, Depends, Request

from ticketing.services.webhook_handler import WebhookHandler
from ticketing_api.dependencies import get_webhook_handler
from ticketing_api.models.webhooks import WebhookResponse

router = APIRouter(tags=["webhooks"])

SIGNATURE_HEADER = "Stripe-Signature"


@router.post(
    "/webhook",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. Handles:
- checkout.session.completed: Reconciles the purchased items and forwards them
  to the ticket-issuing automation

Other event types are acknowledged and ignored.

**No authentication required** - signature is verified using the Stripe webhook secret.
""",
    response_model=WebhookResponse,
    responses={
        200: {"description": "Event received and processed (or acknowledged)"},
        400: {"description": "Invalid signature or missing header"},
    },
)
async def handle_stripe_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    # Raw body: any re-serialization breaks the signature
    payload = await request.body()
    result = handler.process(payload, request.headers.get(SIGNATURE_HEADER))

    outcome = result.outcome
    return WebhookResponse(
        received=True,
        event_id=outcome.event_id,
        event_type=outcome.event_type,
        processing_result=outcome.status.value,
        forwarded=bool(result.forward and result.forward.delivered),
        message=outcome.message or (result.forward.error if result.forward else None),
    )
