"""Rebuild per-ticket business data from a completed checkout session.

Stripe's line items are authoritative for money but are merged by price and
know nothing about SKUs or travel dates. The side channel written at checkout
time is authoritative for those. Reconciliation lines the two up:

1. Expand: group side-channel records by price, in first-appearance order.
   This reproduces the merge done by the cart normalizer, so group ``i``
   corresponds to Stripe line item ``i``.
2. Join: pair group ``i`` with line item ``i``. A group that agrees with
   the line item on price and total quantity expands into one reconciled
   line per record. Anything else collapses to one line with Stripe's
   quantity, and the result is marked partial. When only the quantity
   disagrees (a merge clamped at the maximum) that line still takes its SKU,
   and a date shared by every record, from the side channel.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ticketing.models.cart import SideChannelRecord
from ticketing.models.errors import UnknownSku
from ticketing.models.reconciliation import (
    AutomationPayload,
    ReconciledLineItem,
    ReconciliationRun,
    ReconciliationStatus,
)
from ticketing.services.catalog import Catalog
from ticketing.services.side_channel import decode_side_channel, declared_record_count
from ticketing.utils.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_SKU = "UNKNOWN"


@dataclass
class SideChannelGroup:
    """Records that were merged into one Stripe line item."""

    price_ref: str | None
    records: list[SideChannelRecord] = field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(record.quantity for record in self.records)

    def matches(self, price_ref: str | None, quantity: int | None) -> bool:
        return (
            self.price_ref is not None
            and self.price_ref == price_ref
            and self.total_quantity == quantity
        )


@dataclass
class JoinResult:
    line_items: list[ReconciledLineItem]
    degraded_items: int


def _get(obj: Any, key: str) -> Any:
    """Read a field from a Stripe object or plain dict; None when absent."""
    if isinstance(obj, Mapping):
        return obj.get(key)
    return None


def expand_side_channel(records: Sequence[SideChannelRecord], catalog: Catalog) -> list[SideChannelGroup]:
    """Group records by resolved price, preserving first-appearance order."""
    groups: dict[str, SideChannelGroup] = {}
    for record in records:
        try:
            price_ref: str | None = catalog.resolve(record.sku)
            key = price_ref
        except UnknownSku:
            # Catalog changed since checkout; keep the record's slot so later
            # groups stay aligned with Stripe's line items.
            price_ref = None
            key = f"sku:{record.sku}"
        group = groups.setdefault(key, SideChannelGroup(price_ref=price_ref))
        group.records.append(record)
    return list(groups.values())


def _substitute_sku(price: Any, product: Any, catalog: Catalog) -> str:
    """Best available SKU for a line item with no usable side-channel data."""
    price_metadata = _get(price, "metadata")
    candidates = (
        catalog.sku_for_price(_get(price, "id")),
        _get(price_metadata, "sku"),
        _get(price, "nickname"),
        _get(product, "name"),
    )
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return UNKNOWN_SKU


def _describe(line_item: Any, price: Any, product: Any) -> str:
    for candidate in (_get(line_item, "description"), _get(product, "name"), _get(price, "nickname")):
        if isinstance(candidate, str) and candidate:
            return candidate
    return "Item"


def join_line_items(
    line_items: Sequence[Any],
    groups: Sequence[SideChannelGroup],
    *,
    catalog: Catalog,
    session_date: str | None,
    session_currency: str | None,
) -> JoinResult:
    """Positionally join Stripe line items with side-channel groups."""
    reconciled: list[ReconciledLineItem] = []
    degraded = 0

    for index, line_item in enumerate(line_items):
        price = _get(line_item, "price")
        product = _get(price, "product")
        price_ref = _get(price, "id")
        product_ref = _get(product, "id") if isinstance(product, Mapping) else product
        quantity = _get(line_item, "quantity")
        unit_amount = _get(price, "unit_amount")
        currency = _get(price, "currency") or _get(line_item, "currency") or session_currency
        description = _describe(line_item, price, product)

        group = groups[index] if index < len(groups) else None
        if group is not None and group.matches(price_ref, quantity):
            for record in group.records:
                reconciled.append(
                    ReconciledLineItem(
                        sku=record.sku,
                        quantity=record.quantity,
                        unit_amount=unit_amount,
                        currency=currency,
                        date=record.date or session_date,
                        price_ref=price_ref,
                        product_ref=product_ref,
                        description=description,
                        source="side_channel",
                    )
                )
            continue

        degraded += 1
        sku, date = _substitute_sku(price, product, catalog), session_date
        if group is not None and group.price_ref is not None and group.price_ref == price_ref:
            # Same price, different quantity (clamped merge): the records still name the ticket
            sku = group.records[0].sku
            dates = {record.date for record in group.records}
            if len(dates) == 1 and None not in dates:
                date = dates.pop()
            logger.warning(
                "Line item %d (%s) quantity %s differs from side channel total %d; keeping gateway quantity",
                index,
                price_ref,
                quantity,
                group.total_quantity,
            )
        else:
            logger.warning(
                "Line item %d (%s) has no matching side-channel group; using gateway data",
                index,
                price_ref,
            )
        reconciled.append(
            ReconciledLineItem(
                sku=sku,
                quantity=quantity if isinstance(quantity, int) else 1,
                unit_amount=unit_amount,
                currency=currency,
                date=date,
                price_ref=price_ref,
                product_ref=product_ref,
                description=description,
                source="fallback",
            )
        )

    if len(groups) > len(line_items):
        # Business data with no gateway line to attach to
        degraded += len(groups) - len(line_items)
        logger.warning(
            "%d side-channel groups have no matching line item",
            len(groups) - len(line_items),
        )

    return JoinResult(line_items=reconciled, degraded_items=degraded)


def build_automation_payload(
    session: Any,
    line_items: Sequence[Any],
    catalog: Catalog,
    run: ReconciliationRun,
) -> tuple[AutomationPayload, int]:
    """Reconcile a completed session into the automation payload.

    Drives ``run`` from VERIFIED through EXPANDED and JOINED to READY or
    PARTIAL_FAILURE.

    Args:
        session: Re-fetched checkout session (Stripe object or dict).
        line_items: Re-fetched line items with prices expanded.
        catalog: SKU -> price mapping.
        run: State machine for this delivery, currently VERIFIED.

    Returns:
        Tuple of (payload, number of degraded lines).
    """
    metadata = _get(session, "metadata") or {}
    session_date = _get(metadata, "date")
    session_currency = _get(session, "currency")

    records = decode_side_channel(metadata)
    declared = declared_record_count(metadata)
    truncated = declared is not None and declared > len(records)
    if truncated:
        logger.warning(
            "Side channel for %s was truncated: %d of %d records available",
            _get(session, "id"),
            len(records),
            declared,
        )

    groups = expand_side_channel(records, catalog)
    run.advance(ReconciliationStatus.EXPANDED)

    joined = join_line_items(
        line_items,
        groups,
        catalog=catalog,
        session_date=session_date,
        session_currency=session_currency,
    )
    run.advance(ReconciliationStatus.JOINED)

    customer_details = _get(session, "customer_details") or {}
    partial = joined.degraded_items > 0
    payload = AutomationPayload(
        session_id=_get(session, "id") or "",
        mode=_get(session, "mode"),
        payment_status=_get(session, "payment_status"),
        amount_total=_get(session, "amount_total"),
        amount_subtotal=_get(session, "amount_subtotal"),
        currency=session_currency,
        customer_email=_get(customer_details, "email") or _get(session, "customer_email"),
        customer_name=_get(customer_details, "name"),
        date=session_date,
        line_items=joined.line_items,
        metadata=dict(metadata),
        partial=partial,
    )

    run.advance(ReconciliationStatus.PARTIAL_FAILURE if partial else ReconciliationStatus.READY)
    return payload, joined.degraded_items
