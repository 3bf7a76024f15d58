"""HTTP client for the ticket-issuing automation endpoint.

Delivers reconciled payloads with a bearer shared secret. A failed delivery
is logged as ForwardingFailure and reported back to the caller; it is never
raised into the webhook route and never retried in-process, so Stripe is
always acknowledged once the delivery has been verified. Operators re-drive
failed sessions by hand.
"""

from functools import lru_cache

import httpx

from ticketing.config import Settings, get_settings
from ticketing.models.errors import ConfigurationError, ForwardingFailure
from ticketing.models.reconciliation import AutomationPayload, ForwardResult
from ticketing.utils.logging import get_logger, log_forwarding

logger = get_logger(__name__)

SOURCE_HEADER = "X-Source"
SOURCE_VALUE = "stripe"
IDEMPOTENCY_HEADER = "Idempotency-Key"


class AutomationClient:
    """Forwards reconciled checkout sessions to the automation endpoint.

    Args:
        settings: Deployment settings. Defaults to the process-wide settings.
        transport: Optional httpx transport (tests pass an httpx.MockTransport).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    def _headers(self, secret: str, session_id: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {secret}",
            SOURCE_HEADER: SOURCE_VALUE,
            # Downstream issuance dedupes on the session reference
            IDEMPOTENCY_HEADER: session_id,
        }

    def send(self, payload: AutomationPayload) -> ForwardResult:
        """POST the payload once.

        Raises:
            ConfigurationError: If the endpoint URL or shared secret is missing.
            ForwardingFailure: On a transport error or a non-2xx answer.
        """
        url = self._settings.require_automation_url()
        secret = self._settings.require_secret("automation_shared_secret")

        logger.info(
            "Forwarding session %s to automation (%d items, has_secret=%s)",
            payload.session_id,
            len(payload.line_items),
            bool(secret),
        )

        try:
            with httpx.Client(
                timeout=self._settings.automation_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.post(
                    url,
                    json=payload.model_dump(mode="json"),
                    headers=self._headers(secret, payload.session_id),
                )
        except httpx.InvalidURL as e:
            raise ForwardingFailure(
                {"session_id": payload.session_id, "reason": "configuration"},
                message=f"Automation endpoint URL is invalid: {e}",
            ) from e
        except httpx.HTTPError as e:
            raise ForwardingFailure(
                {"session_id": payload.session_id, "reason": type(e).__name__},
                message=f"Automation endpoint unreachable: {e}",
            ) from e

        if not response.is_success:
            raise ForwardingFailure(
                {"session_id": payload.session_id, "status_code": response.status_code},
                message=f"Automation endpoint answered {response.status_code}: {response.text[:200]}",
            )

        return ForwardResult(delivered=True, status_code=response.status_code)

    def forward(self, payload: AutomationPayload) -> ForwardResult:
        """Deliver the payload, converting every failure into a ForwardResult.

        Returns:
            ForwardResult; ``delivered`` is False on any failure.
        """
        try:
            result = self.send(payload)
        except ForwardingFailure as e:
            status_code = (e.details or {}).get("status_code")
            log_forwarding(logger, payload.session_id, delivered=False, status_code=status_code, error=e.message)
            return ForwardResult(delivered=False, status_code=status_code, error=e.message)
        except ConfigurationError as e:
            log_forwarding(logger, payload.session_id, delivered=False, error=e.message)
            return ForwardResult(delivered=False, error=e.message)

        log_forwarding(logger, payload.session_id, delivered=True, status_code=result.status_code)
        return result


@lru_cache(maxsize=1)
def get_automation_client() -> AutomationClient:
    """Get the shared AutomationClient instance."""
    return AutomationClient()
