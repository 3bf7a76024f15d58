"""Checkout endpoint: turns a client cart into a Stripe-hosted checkout page.

Prices are never taken from the client. Each item's SKU is resolved against
the server-side catalog; unknown or malformed entries are dropped, and the
request fails only when nothing sellable is left.
"""

from fastapi import APIRouter, Depends, Request

from ticketing.models.errors import InvalidPayload
from ticketing.services.checkout_service import CheckoutService
from ticketing.utils.logging import get_logger
from ticketing_api.dependencies import get_checkout_service
from ticketing_api.models.checkout import CheckoutResponse

logger = get_logger(__name__)

router = APIRouter(tags=["checkout"])


@router.post(
    "/checkout",
    summary="Create a Stripe Checkout session",
    description="""
Accepts a cart of `{sku, quantity, date?}` items and returns the Stripe-hosted
checkout URL.

**Notes:**
- Quantities are clamped to 1..50; unknown SKUs are skipped
- Identical carts return the same session (idempotency key derived from the cart)
- The per-item breakdown travels in session metadata for fulfilment
""",
    response_model=CheckoutResponse,
    responses={
        200: {"description": "Checkout session created"},
        400: {"description": "Malformed cart or no sellable items"},
        500: {"description": "Misconfiguration or Stripe rejected the session"},
    },
)
async def create_checkout(
    request: Request,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidPayload({"reason": "body is not valid JSON"}) from e

    result = service.start_checkout(body)
    return CheckoutResponse(url=result.checkout_url, session_id=result.session_id)
