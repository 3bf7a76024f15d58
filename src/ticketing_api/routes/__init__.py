"""API routes package.

Routers are organized by concern:

- health: Liveness check
- catalog: Sellable SKUs
- checkout: Cart to hosted checkout session
- webhooks: Stripe event intake and forwarding

All routers are registered in main.py at the root path.
"""

from ticketing_api.routes.catalog import router as catalog_router
from ticketing_api.routes.checkout import router as checkout_router
from ticketing_api.routes.health import router as health_router
from ticketing_api.routes.webhooks import router as webhooks_router

__all__ = [
    "catalog_router",
    "checkout_router",
    "health_router",
    "webhooks_router",
]
