"""Cart normalization.

Turns an untrusted client cart into:
- merged, priced ResolvedLineItems for the Stripe session, and
- pre-merge SideChannelRecords that keep each entry's SKU and date.

Bad entries are dropped rather than failing the request; the request only
fails when the body itself is malformed or nothing is left to sell.
"""

import datetime as dt
import math
from typing import Any

from pydantic import ValidationError

from ticketing.models.cart import (
    MAX_QUANTITY,
    MIN_QUANTITY,
    CheckoutRequest,
    NormalizedCart,
    ResolvedLineItem,
    SideChannelRecord,
)
from ticketing.models.errors import InvalidPayload, NoValidItems, UnknownSku
from ticketing.services.catalog import Catalog, normalize_sku
from ticketing.utils.logging import get_logger, log_checkout_operation

logger = get_logger(__name__)

# Upper bound on raw entries; the catalog has a handful of SKUs so anything
# near this is not a real cart.
MAX_CART_ENTRIES = 200


def parse_checkout_request(body: Any) -> CheckoutRequest:
    """Validate the top-level shape of a checkout body.

    Raises:
        InvalidPayload: If the body is not an object with a non-empty items list.
    """
    if not isinstance(body, dict):
        raise InvalidPayload({"message": "Body must be a JSON object"})

    try:
        request = CheckoutRequest.model_validate(
            {
                "items": body.get("items"),
                "date": body.get("date") if isinstance(body.get("date"), str) else None,
                "customerEmail": (
                    body.get("customerEmail") if isinstance(body.get("customerEmail"), str) else None
                ),
            }
        )
    except ValidationError as e:
        raise InvalidPayload({"message": "items must be a list"}) from e

    if not request.items:
        raise InvalidPayload({"message": "items must not be empty"})
    if len(request.items) > MAX_CART_ENTRIES:
        raise InvalidPayload({"message": f"items must have at most {MAX_CART_ENTRIES} entries"})
    return request


def parse_quantity(raw: Any) -> int:
    """Coerce a client quantity into [MIN_QUANTITY, MAX_QUANTITY].

    Fractions are floored, out-of-range values clamp to the nearest bound,
    and anything absent or non-numeric becomes 1.
    """
    if isinstance(raw, bool):
        return MIN_QUANTITY
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            return MIN_QUANTITY
    if not isinstance(raw, (int, float)):
        return MIN_QUANTITY
    if isinstance(raw, float) and not math.isfinite(raw):
        return MIN_QUANTITY
    return clamp_quantity(math.floor(raw))


def clamp_quantity(value: int) -> int:
    return max(MIN_QUANTITY, min(MAX_QUANTITY, value))


def parse_date(raw: Any) -> str | None:
    """Return an ISO ``YYYY-MM-DD`` date string, or None if not one."""
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    try:
        return dt.date.fromisoformat(value).isoformat() if len(value) == 10 else None
    except ValueError:
        return None


def sanitize_email(raw: str | None) -> str | None:
    """Keep an email only if it plausibly is one; Stripe rejects the rest."""
    if not raw:
        return None
    value = raw.strip()
    local, sep, domain = value.partition("@")
    if not sep or not local or "@" in domain or "." not in domain.strip("."):
        return None
    if any(ch.isspace() for ch in value) or len(value) > 254:
        return None
    return value


def normalize_cart(request: CheckoutRequest, catalog: Catalog) -> NormalizedCart:
    """Normalize a validated checkout request against the catalog.

    Args:
        request: Body that passed parse_checkout_request.
        catalog: SKU -> price mapping.

    Returns:
        NormalizedCart with unique price refs and one side-channel record per
        accepted entry.

    Raises:
        InvalidPayload: If no entry has a string sku.
        NoValidItems: If no entry resolves to a catalog price.
    """
    request_date = parse_date(request.date)
    merged: dict[str, int] = {}
    side_channel: list[SideChannelRecord] = []
    well_formed = 0
    dropped = 0

    for entry in request.items:
        if not isinstance(entry, dict) or not isinstance(entry.get("sku"), str):
            dropped += 1
            continue
        well_formed += 1

        try:
            price_ref = catalog.resolve(entry["sku"])
        except UnknownSku as e:
            logger.warning("Dropping cart entry with unknown SKU %s", e.sku)
            dropped += 1
            continue

        quantity = parse_quantity(entry.get("quantity"))
        # dict keeps first-appearance order, which is the line item order sent to Stripe
        merged[price_ref] = merged.get(price_ref, 0) + quantity
        side_channel.append(
            SideChannelRecord(
                sku=normalize_sku(entry["sku"]),
                quantity=quantity,
                date=parse_date(entry.get("date")) or request_date,
            )
        )

    if well_formed == 0:
        raise InvalidPayload({"message": "Each item must include a sku:string"})
    if not merged:
        raise NoValidItems({"valid_skus": ", ".join(catalog.skus())})

    line_items = [
        ResolvedLineItem(price_ref=price_ref, quantity=clamp_quantity(total))
        for price_ref, total in merged.items()
    ]

    log_checkout_operation(
        logger,
        "normalize_cart",
        line_items=len(line_items),
        side_channel_records=len(side_channel),
        dropped=dropped,
    )

    return NormalizedCart(
        line_items=line_items,
        side_channel=side_channel,
        date=request_date,
        customer_email=sanitize_email(request.customer_email),
        dropped=dropped,
    )
