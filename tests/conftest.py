"""Shared fixtures for the ticket checkout test suite:
- Environment isolation (every deployment setting unset by default)
- SSM mocking with moto, so secret lookups never leave the process
- Stripe client mocking and real webhook signatures
- Sample sessions and line items shaped like Stripe's responses
"""

import hashlib
import hmac
import json
import os
import time
from collections.abc import Callable
from typing import Any, Generator
from unittest.mock import MagicMock, patch

import pytest
from moto import mock_aws

# Fake credentials before any boto3 client exists
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"

from ticketing.config import ENV_NAMES, Settings  # noqa: E402
from ticketing.models.cart import SideChannelRecord  # noqa: E402
from ticketing.services.catalog import DEFAULT_PRICE_MAP, Catalog  # noqa: E402
from ticketing.services.side_channel import encode_side_channel  # noqa: E402
from ticketing.services.stripe_service import StripeService  # noqa: E402
from ticketing_api.dependencies import reset_services  # noqa: E402

TEST_BASE_URL = "https://tickets.example.com"
TEST_STRIPE_KEY = "sk_test_abc123"
TEST_WEBHOOK_SECRET = "whsec_test_secret_for_testing"
TEST_AUTOMATION_URL = "https://automation.example.com/webhook/tickets"
TEST_SHARED_SECRET = "shared-secret-xyz"
TEST_SESSION_ID = "cs_test_a1B2c3D4"

MOUCHES_ADULT = DEFAULT_PRICE_MAP["MOUCHES_ADULT"]
MOUCHES_CHILD = DEFAULT_PRICE_MAP["MOUCHES_CHILD"]
PARISIENS_ADULT = DEFAULT_PRICE_MAP["PARISIENS_ADULT"]


# === Isolation Fixtures ===


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Unset every deployment variable and drop cached services."""
    for names in ENV_NAMES.values():
        for name in names:
            monkeypatch.delenv(name, raising=False)
    reset_services()
    yield
    reset_services()


@pytest.fixture(autouse=True)
def mock_ssm() -> Generator[None, None, None]:
    """Route every SSM call to moto; unknown parameters are ParameterNotFound."""
    with mock_aws():
        yield


@pytest.fixture
def configured_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment of a fully configured deployment."""
    monkeypatch.setenv("BASE_URL", TEST_BASE_URL)
    monkeypatch.setenv("STRIPE_SECRET_KEY", TEST_STRIPE_KEY)
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", TEST_WEBHOOK_SECRET)
    monkeypatch.setenv("AUTOMATION_WEBHOOK_URL", TEST_AUTOMATION_URL)
    monkeypatch.setenv("AUTOMATION_SHARED_SECRET", TEST_SHARED_SECRET)
    reset_services()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        base_url=TEST_BASE_URL,
        stripe_secret_key=TEST_STRIPE_KEY,
        stripe_webhook_secret=TEST_WEBHOOK_SECRET,
        automation_webhook_url=TEST_AUTOMATION_URL,
        automation_shared_secret=TEST_SHARED_SECRET,
    )


@pytest.fixture
def catalog() -> Catalog:
    return Catalog(DEFAULT_PRICE_MAP)


# === Stripe Fixtures ===


@pytest.fixture
def stripe_client() -> Generator[MagicMock, None, None]:
    """Mock StripeClient returned by every StripeClient(...) construction."""
    client = MagicMock()
    client.checkout.sessions.create.return_value = MagicMock(
        id=TEST_SESSION_ID,
        url=f"https://checkout.stripe.com/c/pay/{TEST_SESSION_ID}",
    )
    with patch("ticketing.services.stripe_service.StripeClient", return_value=client):
        yield client


@pytest.fixture
def stripe_service(settings: Settings, stripe_client: MagicMock) -> StripeService:
    return StripeService(settings)


def sign_payload(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """``Stripe-Signature`` value: HMAC-SHA256 of ``"{t}.{body}"`` under ``secret``."""
    ts = str(timestamp if timestamp is not None else int(time.time()))
    signed_payload = f"{ts}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={ts},v1={signature}"


@pytest.fixture
def signer() -> Callable[..., str]:
    return sign_payload


def make_event(
    event_type: str = "checkout.session.completed",
    session_id: str = TEST_SESSION_ID,
    event_id: str = "evt_1ABC123DEF456",
) -> bytes:
    """Serialized webhook event body."""
    return json.dumps(
        {
            "id": event_id,
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": {"id": session_id, "object": "checkout.session"}},
        }
    ).encode("utf-8")


def make_line_item(
    price_ref: str,
    quantity: int,
    *,
    unit_amount: int = 2500,
    description: str = "Bateaux Mouches Adult",
    price_metadata: dict[str, str] | None = None,
    nickname: str | None = None,
    product_name: str | None = "Bateaux Mouches Adult",
) -> dict[str, Any]:
    """Line item as returned by sessions.line_items.list with price.product expanded."""
    return {
        "id": f"li_{price_ref[-6:]}",
        "object": "item",
        "description": description,
        "quantity": quantity,
        "currency": "eur",
        "amount_total": unit_amount * quantity,
        "price": {
            "id": price_ref,
            "unit_amount": unit_amount,
            "currency": "eur",
            "nickname": nickname,
            "metadata": price_metadata or {},
            "product": {"id": f"prod_{price_ref[-6:]}", "name": product_name},
        },
    }


def make_session(
    records: list[SideChannelRecord],
    *,
    session_id: str = TEST_SESSION_ID,
    date: str | None = "2026-07-14",
    amount_total: int = 12500,
) -> dict[str, Any]:
    """Completed checkout session carrying ``records`` in metadata."""
    metadata: dict[str, str] = {"source": "homepage"}
    if date:
        metadata["date"] = date
    side_channel, _ = encode_side_channel(records)
    metadata.update(side_channel)
    return {
        "id": session_id,
        "object": "checkout.session",
        "mode": "payment",
        "payment_status": "paid",
        "amount_total": amount_total,
        "amount_subtotal": amount_total,
        "currency": "eur",
        "customer_details": {"email": "guest@example.com", "name": "Camille Martin"},
        "metadata": metadata,
    }
