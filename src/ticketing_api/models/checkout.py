"""Request/response models for checkout and catalog endpoints."""

from pydantic import BaseModel, Field


class CheckoutResponse(BaseModel):
    """Hosted checkout URL for the browser to redirect to."""

    url: str = Field(..., description="Stripe-hosted checkout page URL")
    session_id: str = Field(..., description="Stripe Checkout Session ID")


class CatalogResponse(BaseModel):
    """SKUs that can be sold through /checkout."""

    skus: list[str]
