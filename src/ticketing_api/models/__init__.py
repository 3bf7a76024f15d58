"""API request/response models."""

from ticketing_api.models.checkout import CatalogResponse, CheckoutResponse
from ticketing_api.models.webhooks import WebhookResponse

__all__ = ["CatalogResponse", "CheckoutResponse", "WebhookResponse"]
