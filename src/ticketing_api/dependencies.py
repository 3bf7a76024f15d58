"""FastAPI dependency injection providers for shared services.

Services are lazily instantiated and cached with @lru_cache. Tests replace
them through ``app.dependency_overrides`` or clear them with reset_services().

Service Dependency Graph:
    Settings (get_settings)
        ├── Catalog
        ├── StripeService
        │       └── CheckoutService (+ Catalog)
        └── AutomationClient
                └── WebhookHandler (+ StripeService, Catalog)
"""

from functools import lru_cache

from ticketing.config import get_settings
from ticketing.services.automation_client import AutomationClient, get_automation_client
from ticketing.services.catalog import Catalog, get_catalog
from ticketing.services.checkout_service import CheckoutService
from ticketing.services.stripe_service import StripeService, get_stripe_service
from ticketing.services.webhook_handler import WebhookHandler


def get_ticket_catalog() -> Catalog:
    return get_catalog()


@lru_cache
def get_checkout_service() -> CheckoutService:
    """Get cached CheckoutService instance."""
    return CheckoutService(
        settings=get_settings(),
        catalog=get_catalog(),
        stripe_service=get_stripe_service(),
    )


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    """Get cached WebhookHandler instance."""
    return WebhookHandler(
        stripe_service=get_stripe_service(),
        automation_client=get_automation_client(),
        catalog=get_catalog(),
    )


def reset_services() -> None:
    """Clear all cached service instances, settings and the catalog.

    Call this in test fixtures after changing environment variables.
    """
    from ticketing.services.ssm_service import reset_ssm_service

    get_checkout_service.cache_clear()
    get_webhook_handler.cache_clear()
    get_stripe_service.cache_clear()
    get_automation_client.cache_clear()
    get_catalog.cache_clear()
    get_settings.cache_clear()
    reset_ssm_service()


__all__ = [
    "AutomationClient",
    "StripeService",
    "get_checkout_service",
    "get_ticket_catalog",
    "get_webhook_handler",
    "reset_services",
]
