"""Stripe gateway: hosted checkout sessions, webhook authentication and
the session re-fetch used by reconciliation.

Credentials resolve through Settings (environment first, then SSM).
"""

import hashlib
import json
from functools import lru_cache
from typing import Any

import stripe
from stripe import StripeClient

from ticketing.config import Settings, get_settings
from ticketing.models.cart import CheckoutSessionResult, ResolvedLineItem, SideChannelRecord
from ticketing.models.errors import BadSignature, ConfigurationError, GatewayRejected
from ticketing.models.stripe_webhook import WebhookEvent
from ticketing.services.side_channel import encode_side_channel
from ticketing.utils.logging import get_logger, log_checkout_operation

logger = get_logger(__name__)

CHECKOUT_SOURCE = "homepage"
LINE_ITEM_PAGE_SIZE = 100


class StripeService:
    """Thin StripeClient wrapper bound to one deployment's settings.

    Usage:
        result = get_stripe_service().create_checkout_session(
            line_items=cart.line_items,
            side_channel=cart.side_channel,
            success_url=f"{base_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/cancel",
        )
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        """Build the StripeClient on first use.

        Raises:
            ConfigurationError: If the API key cannot be resolved.
        """
        if self._client is None:
            secret_key = self._settings.require_secret("stripe_secret_key")
            self._client = StripeClient(
                secret_key,
                http_client=stripe.RequestsClient(timeout=self._settings.stripe_timeout_seconds),
            )
            logger.info(
                "Stripe client initialized for environment: %s (%s mode)",
                self._settings.environment,
                "live" if secret_key.startswith("sk_live_") else "test",
            )
        return self._client

    def _get_webhook_secret(self) -> str:
        if self._webhook_secret is None:
            self._webhook_secret = self._settings.require_secret("stripe_webhook_secret")
        return self._webhook_secret

    @staticmethod
    def compute_idempotency_key(params: dict[str, Any]) -> str:
        """Derive the idempotency key from the full session params.

        Identical resubmissions (double clicks, client retries) share a key
        and therefore a session; any change to items, date, redirects or
        email yields a new one.
        """
        canonical = json.dumps(params, sort_keys=True, separators=(",", ":"))
        return f"checkout:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

    def build_session_params(
        self,
        *,
        line_items: list[ResolvedLineItem],
        side_channel: list[SideChannelRecord],
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        date: str | None = None,
    ) -> tuple[dict[str, Any], int]:
        """Assemble the checkout.sessions.create params.

        Returns:
            Tuple of (params, side-channel records kept in metadata).
        """
        metadata: dict[str, str] = {"source": CHECKOUT_SOURCE}
        if date:
            metadata["date"] = date
        side_channel_metadata, kept = encode_side_channel(side_channel)
        metadata.update(side_channel_metadata)

        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [item.to_stripe_param() for item in line_items],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email
        return params, kept

    def create_checkout_session(
        self,
        *,
        line_items: list[ResolvedLineItem],
        side_channel: list[SideChannelRecord],
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        date: str | None = None,
    ) -> CheckoutSessionResult:
        """Open a hosted payment-mode session for a normalized cart.

        ``side_channel`` holds the pre-merge records; as many as fit the
        metadata budget are embedded, and the count kept is returned on the
        result. ``success_url`` may contain ``{CHECKOUT_SESSION_ID}``.

        Raises:
            ConfigurationError: If the Stripe API key is missing.
            GatewayRejected: If Stripe refuses the request.
        """
        client = self._get_client()

        params, kept = self.build_session_params(
            line_items=line_items,
            side_channel=side_channel,
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=customer_email,
            date=date,
        )
        idempotency_key = self.compute_idempotency_key(params)

        try:
            session = client.checkout.sessions.create(
                params=params,
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            log_checkout_operation(
                logger,
                "create_checkout_session",
                line_items=len(line_items),
                error=str(e),
                stripe_error_code=error_code,
                first_price=line_items[0].price_ref if line_items else None,
            )
            raise GatewayRejected(
                getattr(e, "user_message", None) or str(e) or None,
                stripe_error_code=error_code,
            ) from e

        log_checkout_operation(
            logger,
            "create_checkout_session",
            session_id=session.id,
            line_items=len(line_items),
            side_channel_records=kept,
        )

        return CheckoutSessionResult(
            session_id=session.id,
            checkout_url=session.url,
            idempotency_key=idempotency_key,
            side_channel_kept=kept,
        )

    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> WebhookEvent:
        """Verify a webhook signature over the raw body and parse the event.

        Args:
            payload: Raw request body bytes, exactly as received.
            signature: Stripe-Signature header value.

        Returns:
            The verified WebhookEvent.

        Raises:
            BadSignature: On a missing header or secret, a mismatch, a stale
                timestamp, or a body that is not UTF-8 JSON.
        """
        if not signature:
            logger.warning("Webhook request missing Stripe-Signature header")
            raise BadSignature("missing_header")

        try:
            webhook_secret = self._get_webhook_secret()
        except ConfigurationError as e:
            logger.error("Rejecting webhook: %s", e.message)
            raise BadSignature("missing_secret") from e

        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                text,
                signature,
                webhook_secret,
                self._settings.stripe_webhook_tolerance,
            )
        except UnicodeDecodeError as e:
            logger.warning("Webhook body is not UTF-8")
            raise BadSignature("undecodable_body") from e
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise BadSignature("signature_mismatch") from e

        try:
            event = json.loads(text)
        except ValueError as e:
            logger.warning("Signed webhook body is not JSON")
            raise BadSignature("invalid_json") from e
        if not isinstance(event, dict):
            raise BadSignature("invalid_json")

        verified = WebhookEvent.from_payload(event, signature=signature, raw_bytes=payload)
        logger.info("Webhook signature verified for event: %s", verified.event_id)
        return verified

    def retrieve_session(self, session_id: str) -> Any:
        """Re-fetch a checkout session.

        Raises:
            ConfigurationError: If the Stripe API key is missing.
            GatewayRejected: If Stripe fails or times out.
        """
        client = self._get_client()
        try:
            return client.checkout.sessions.retrieve(session_id)
        except stripe.StripeError as e:
            logger.error("Failed to retrieve session %s: %s", session_id, e)
            raise GatewayRejected(str(e) or None, stripe_error_code=getattr(e, "code", None)) from e

    def list_line_items(self, session_id: str) -> list[Any]:
        """Fetch a session's line items with prices and products expanded.

        Capped at one page of LINE_ITEM_PAGE_SIZE, well above the catalog size.

        Raises:
            ConfigurationError: If the Stripe API key is missing.
            GatewayRejected: If Stripe fails or times out.
        """
        client = self._get_client()
        try:
            page = client.checkout.sessions.line_items.list(
                session_id,
                params={"limit": LINE_ITEM_PAGE_SIZE, "expand": ["data.price.product"]},
            )
        except stripe.StripeError as e:
            logger.error("Failed to list line items for %s: %s", session_id, e)
            raise GatewayRejected(str(e) or None, stripe_error_code=getattr(e, "code", None)) from e

        if page.get("has_more"):
            logger.warning(
                "Session %s has more than %d line items; extra items ignored",
                session_id,
                LINE_ITEM_PAGE_SIZE,
            )
        return list(page.get("data") or [])


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance (singleton pattern)."""
    return StripeService()
