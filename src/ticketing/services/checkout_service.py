"""Checkout orchestration: client cart in, hosted checkout URL out."""

from typing import Any

from ticketing.config import Settings
from ticketing.models.cart import CheckoutSessionResult
from ticketing.services.cart import normalize_cart, parse_checkout_request
from ticketing.services.catalog import Catalog
from ticketing.services.stripe_service import StripeService

SUCCESS_PATH = "/success?session_id={CHECKOUT_SESSION_ID}"
CANCEL_PATH = "/cancel"


class CheckoutService:
    """Creates one Stripe Checkout session per distinct cart.

    Every session goes through StripeService.create_checkout_session, which
    derives the idempotency key from the full request, so resubmitting the
    same cart returns the same session.
    """

    def __init__(self, settings: Settings, catalog: Catalog, stripe_service: StripeService) -> None:
        self._settings = settings
        self._catalog = catalog
        self._stripe = stripe_service

    def redirect_urls(self) -> tuple[str, str]:
        """Success and cancel URLs under the configured base URL.

        Raises:
            ConfigurationError: If BASE_URL is not set.
        """
        base_url = self._settings.require_base_url()
        return f"{base_url}{SUCCESS_PATH}", f"{base_url}{CANCEL_PATH}"

    def start_checkout(self, body: Any) -> CheckoutSessionResult:
        """Normalize a raw checkout body and create the Stripe session.

        Raises:
            InvalidPayload: If the body is malformed.
            NoValidItems: If no item resolves to a catalog price.
            ConfigurationError: If BASE_URL or the Stripe key is missing.
            GatewayRejected: If Stripe refuses the session.
        """
        request = parse_checkout_request(body)
        cart = normalize_cart(request, self._catalog)
        success_url, cancel_url = self.redirect_urls()

        return self._stripe.create_checkout_session(
            line_items=cart.line_items,
            side_channel=cart.side_channel,
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=cart.customer_email,
            date=cart.date,
        )
