"""Webhook handler for processing Stripe events.

Provides business logic for handling webhook events separate from
HTTP routing concerns. This enables:
- Unit testing without HTTP overhead
- Reuse across different transport mechanisms

Every delivery is processed from scratch: there is no event table, and a
redelivered event is reconciled and forwarded again. The automation side
dedupes on the session reference.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from ticketing.models.errors import BadSignature, TicketingError
from ticketing.models.reconciliation import (
    ForwardResult,
    ReconciliationOutcome,
    ReconciliationRun,
    ReconciliationStatus,
)
from ticketing.models.stripe_webhook import WebhookEvent
from ticketing.services.automation_client import AutomationClient
from ticketing.services.catalog import Catalog
from ticketing.services.reconciliation import build_automation_payload
from ticketing.services.stripe_service import StripeService
from ticketing.utils.logging import get_logger, log_forwarding, log_webhook_event

logger = get_logger(__name__)

# Delayed methods complete the session as "unpaid" and settle later
SETTLED_PAYMENT_STATUSES = frozenset({"paid", "no_payment_required"})


@dataclass
class WebhookResult:
    """Outcome of one delivery plus the forwarding attempt, if any."""

    outcome: ReconciliationOutcome
    forward: ForwardResult | None = None


class WebhookHandler:
    """Runs one Stripe delivery through verification, reconciliation and forwarding."""

    def __init__(
        self,
        stripe_service: StripeService,
        automation_client: AutomationClient,
        catalog: Catalog,
    ) -> None:
        self._stripe = stripe_service
        self._automation = automation_client
        self._catalog = catalog

    def process(self, payload: bytes, signature: str | None) -> WebhookResult:
        """Verify, reconcile and forward one delivery.

        Raises:
            BadSignature: If verification fails. This is the only exception
                that escapes; every later failure is folded into the result.
        """
        run = ReconciliationRun()
        try:
            event = self._stripe.verify_webhook_signature(payload, signature)
        except BadSignature as e:
            run.advance(ReconciliationStatus.REJECTED)
            log_webhook_event(logger, "unknown", "unknown", result=run.status.value, error=e.reason)
            raise
        run.advance(ReconciliationStatus.VERIFIED)

        try:
            outcome = self.reconcile(event, run)
        except Exception as e:
            # Past verification every failure is acknowledged with 200
            logger.exception("Reconciliation of %s crashed", event.event_id)
            outcome = self._unexpected(run, event, f"Reconciliation failed: {type(e).__name__}")

        log_webhook_event(
            logger,
            event.type,
            event.event_id,
            session_id=outcome.session_id,
            result=outcome.status.value,
            error=outcome.message if outcome.status != ReconciliationStatus.READY else None,
            degraded_items=outcome.degraded_items,
        )

        if not outcome.status.should_forward() or outcome.payload is None:
            return WebhookResult(outcome=outcome)

        try:
            forward = self._automation.forward(outcome.payload)
        except Exception as e:
            log_forwarding(logger, outcome.payload.session_id, delivered=False, error=f"{type(e).__name__}: {e}")
            forward = ForwardResult(delivered=False, error=f"Forwarding failed: {type(e).__name__}")
        return WebhookResult(outcome=outcome, forward=forward)

    def reconcile(self, event: WebhookEvent, run: ReconciliationRun) -> ReconciliationOutcome:
        """Reconcile a verified event.

        Args:
            event: Verified webhook event.
            run: State machine, currently VERIFIED.

        Returns:
            Terminal outcome: READY, PARTIAL_FAILURE or DEGRADED.
        """
        if not event.is_checkout_completed:
            run.advance(ReconciliationStatus.DEGRADED)
            return self._outcome(run, event, message=f"Event type '{event.type}' not handled")

        if not event.session_ref:
            run.advance(ReconciliationStatus.DEGRADED)
            return self._outcome(run, event, message="Event has no session reference")

        try:
            session = self._stripe.retrieve_session(event.session_ref)
        except TicketingError as e:
            run.advance(ReconciliationStatus.DEGRADED)
            return self._outcome(run, event, message=f"Session re-fetch failed: {e.message}")

        payment_status = session.get("payment_status") if isinstance(session, Mapping) else None
        if payment_status not in SETTLED_PAYMENT_STATUSES:
            run.advance(ReconciliationStatus.DEGRADED)
            return self._outcome(run, event, message=f"Payment status '{payment_status}' is not settled")

        try:
            line_items = self._stripe.list_line_items(event.session_ref)
        except TicketingError as e:
            run.advance(ReconciliationStatus.DEGRADED)
            return self._outcome(run, event, message=f"Session re-fetch failed: {e.message}")

        payload, degraded_items = build_automation_payload(session, line_items, self._catalog, run)
        message = None
        if run.status == ReconciliationStatus.PARTIAL_FAILURE:
            message = f"{degraded_items} line(s) reconciled from gateway data only"

        return ReconciliationOutcome(
            status=run.status,
            event_id=event.event_id,
            event_type=event.type,
            session_id=payload.session_id or event.session_ref,
            payload=payload,
            degraded_items=degraded_items,
            message=message,
            history=list(run.history),
        )

    @staticmethod
    def _outcome(run: ReconciliationRun, event: WebhookEvent, *, message: str) -> ReconciliationOutcome:
        return ReconciliationOutcome(
            status=run.status,
            event_id=event.event_id,
            event_type=event.type,
            session_id=event.session_ref,
            message=message,
            history=list(run.history),
        )

    @staticmethod
    def _unexpected(run: ReconciliationRun, event: WebhookEvent, message: str) -> ReconciliationOutcome:
        if run.status.can_transition_to(ReconciliationStatus.DEGRADED):
            run.advance(ReconciliationStatus.DEGRADED)
            history = list(run.history)
        else:
            # Crashed mid-join; the run cannot legally degrade from here
            history = [*run.history, ReconciliationStatus.DEGRADED]
        return ReconciliationOutcome(
            status=ReconciliationStatus.DEGRADED,
            event_id=event.event_id,
            event_type=event.type,
            session_id=event.session_ref,
            message=message,
            history=history,
        )
