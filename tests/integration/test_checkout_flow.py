"""Integration tests for the complete checkout flow.

Tests verify the end-to-end flow through the HTTP surface:
1. Client submits a cart to POST /checkout
2. Stripe (mocked) stores the session request, including its metadata
3. Stripe delivers a signed checkout.session.completed to POST /webhook
4. The reconciled per-ticket payload reaches the automation endpoint

The mocked Stripe client answers re-fetches from the params captured in
step 2, so whatever the checkout side writes is what the webhook side reads.
"""

import json
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from ticketing.config import get_settings
from ticketing.services.automation_client import AutomationClient
from ticketing.services.catalog import DEFAULT_PRICE_MAP, get_catalog
from ticketing.services.stripe_service import get_stripe_service
from ticketing.services.webhook_handler import WebhookHandler
from ticketing_api.dependencies import get_webhook_handler
from ticketing_api.main import app

from conftest import TEST_SESSION_ID, TEST_SHARED_SECRET, make_event, make_line_item, sign_payload

pytestmark = pytest.mark.integration

UNIT_AMOUNTS = {price: 1000 + 500 * i for i, price in enumerate(DEFAULT_PRICE_MAP.values())}


class StripeBackend:
    """Serves sessions.retrieve and line_items.list from captured create params."""

    def __init__(self, stripe_client: MagicMock):
        self.params: dict[str, Any] | None = None
        create = stripe_client.checkout.sessions.create
        original = create.return_value

        def _create(params: dict[str, Any], options: dict[str, Any]) -> Any:
            self.params = params
            return original

        create.side_effect = _create
        stripe_client.checkout.sessions.retrieve.side_effect = self.retrieve
        stripe_client.checkout.sessions.line_items.list.side_effect = self.list_line_items

    def retrieve(self, session_id: str) -> dict[str, Any]:
        assert self.params is not None
        total = sum(UNIT_AMOUNTS[li["price"]] * li["quantity"] for li in self.params["line_items"])
        return {
            "id": session_id,
            "mode": "payment",
            "payment_status": "paid",
            "amount_total": total,
            "amount_subtotal": total,
            "currency": "eur",
            "customer_details": {"email": self.params.get("customer_email"), "name": "Camille Martin"},
            "metadata": dict(self.params["metadata"]),
        }

    def list_line_items(self, session_id: str, params: dict[str, Any]) -> dict[str, Any]:
        assert self.params is not None
        return {
            "data": [
                make_line_item(li["price"], li["quantity"], unit_amount=UNIT_AMOUNTS[li["price"]])
                for li in self.params["line_items"]
            ],
            "has_more": False,
        }


@pytest.fixture
def backend(configured_env: None, stripe_client: MagicMock) -> StripeBackend:
    return StripeBackend(stripe_client)


@pytest.fixture
def forwarded() -> list[httpx.Request]:
    return []


@pytest.fixture
def client(backend: StripeBackend, forwarded: list[httpx.Request]) -> Generator[TestClient, None, None]:
    def automation(request: httpx.Request) -> httpx.Response:
        forwarded.append(request)
        return httpx.Response(200, json={"issued": True})

    handler = WebhookHandler(
        stripe_service=get_stripe_service(),
        automation_client=AutomationClient(get_settings(), transport=httpx.MockTransport(automation)),
        catalog=get_catalog(),
    )
    app.dependency_overrides[get_webhook_handler] = lambda: handler
    yield TestClient(app)
    app.dependency_overrides.clear()


def _complete(client: TestClient) -> httpx.Response:
    payload = make_event(session_id=TEST_SESSION_ID)
    return client.post("/webhook", content=payload, headers={"Stripe-Signature": sign_payload(payload)})


class TestCheckoutToFulfilment:
    def test_each_cart_entry_reaches_automation(self, client: TestClient, forwarded: list[httpx.Request]):
        cart = {
            "date": "2026-07-14",
            "customerEmail": "guest@example.com",
            "items": [
                {"sku": "MOUCHES_ADULT", "quantity": 2, "date": "2026-07-14"},
                {"sku": "MOUCHES_CHILD", "quantity": 1, "date": "2026-07-14"},
                {"sku": "mouches-adult", "quantity": 1, "date": "2026-07-16"},
                {"sku": "BIGBUSCOMBO_ADULT", "quantity": 75},
                {"sku": "LOUVRE_ADULT", "quantity": 1},
            ],
        }

        checkout = client.post("/checkout", json=cart)
        assert checkout.status_code == 200

        webhook = _complete(client)
        assert webhook.status_code == 200
        assert webhook.json()["processing_result"] == "ready"
        assert webhook.json()["forwarded"] is True

        assert len(forwarded) == 1
        request = forwarded[0]
        assert request.headers["Authorization"] == f"Bearer {TEST_SHARED_SECRET}"
        body = json.loads(request.content)
        assert body["session_id"] == TEST_SESSION_ID
        assert body["customer_email"] == "guest@example.com"
        assert body["partial"] is False
        assert [(li["sku"], li["quantity"], li["date"]) for li in body["line_items"]] == [
            ("MOUCHES_ADULT", 2, "2026-07-14"),
            ("MOUCHES_ADULT", 1, "2026-07-16"),
            ("MOUCHES_CHILD", 1, "2026-07-14"),
            ("BIGBUSCOMBO_ADULT", 50, "2026-07-14"),
        ]

    def test_oversized_cart_degrades_to_partial(self, client: TestClient, forwarded: list[httpx.Request]):
        skus = list(DEFAULT_PRICE_MAP)
        items = [{"sku": skus[i % len(skus)], "quantity": 1, "date": "2026-07-14"} for i in range(200)]

        assert client.post("/checkout", json={"items": items}).status_code == 200
        webhook = _complete(client)

        assert webhook.status_code == 200
        assert webhook.json()["processing_result"] == "partial_failure"
        body = json.loads(forwarded[0].content)
        assert body["partial"] is True
        # Money stays complete even when business detail is lost
        assert sum(li["quantity"] for li in body["line_items"]) == 200
