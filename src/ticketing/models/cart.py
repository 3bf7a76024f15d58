"""Cart and checkout session models.

The client cart is untrusted and arrives as raw JSON; these models hold the
trusted forms produced by the cart normalizer.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MIN_QUANTITY = 1
MAX_QUANTITY = 50


class CheckoutRequest(BaseModel):
    """Top-level shape of a POST /checkout body.

    ``items`` stays loosely typed: entries are validated one by one so that a
    single malformed entry is dropped instead of failing the whole cart.
    """

    model_config = ConfigDict(populate_by_name=True)

    items: list[Any] = Field(..., description="Cart entries as submitted by the client")
    date: str | None = Field(
        default=None,
        description="Request-level travel date (YYYY-MM-DD)",
        examples=["2026-07-14"],
    )
    customer_email: str | None = Field(
        default=None,
        alias="customerEmail",
        description="Optional contact email forwarded to Stripe",
    )


class ResolvedLineItem(BaseModel):
    """A priced, merged line item ready for the Stripe session request."""

    model_config = ConfigDict(frozen=True)

    price_ref: str = Field(..., min_length=1, description="Stripe price ID", examples=["price_1SFuSs"])
    quantity: int = Field(..., ge=MIN_QUANTITY, le=MAX_QUANTITY)

    def to_stripe_param(self) -> dict[str, Any]:
        return {"price": self.price_ref, "quantity": self.quantity}


class SideChannelRecord(BaseModel):
    """Per-entry business data carried through session metadata.

    One record per accepted cart entry, before merging, in submission order.
    """

    model_config = ConfigDict(frozen=True)

    sku: str = Field(..., min_length=1, examples=["MOUCHES_ADULT"])
    quantity: int = Field(..., ge=MIN_QUANTITY, le=MAX_QUANTITY)
    date: str | None = Field(default=None, examples=["2026-07-14"])

    def to_compact(self) -> dict[str, Any]:
        """Short-key form used inside the size-limited metadata slot."""
        compact: dict[str, Any] = {"s": self.sku, "q": self.quantity}
        if self.date:
            compact["d"] = self.date
        return compact

    @classmethod
    def from_compact(cls, data: Any) -> "SideChannelRecord | None":
        """Rebuild a record from its compact form.

        Returns:
            The record, or None when the entry is not a usable record.
        """
        if not isinstance(data, dict):
            return None
        sku = data.get("s")
        quantity = data.get("q")
        date = data.get("d")
        if not isinstance(sku, str) or not sku:
            return None
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            return None
        if not MIN_QUANTITY <= quantity <= MAX_QUANTITY:
            return None
        return cls(sku=sku, quantity=quantity, date=date if isinstance(date, str) else None)


class NormalizedCart(BaseModel):
    """Output of cart normalization."""

    line_items: list[ResolvedLineItem]
    side_channel: list[SideChannelRecord]
    date: str | None = None
    customer_email: str | None = None
    dropped: int = Field(default=0, description="Entries dropped as malformed or unknown")


class CheckoutSessionResult(BaseModel):
    """Result of creating a hosted checkout session."""

    session_id: str
    checkout_url: str
    idempotency_key: str
    side_channel_kept: int = Field(
        ...,
        description="Side-channel records that fit in metadata",
    )
