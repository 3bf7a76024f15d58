"""HTTP surface of the ticket checkout service.

``app`` serves uvicorn, ``handler`` serves API Gateway through Mangum.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from ticketing import __version__
from ticketing.config import Settings, get_settings
from ticketing.utils.logging import configure_logging
from ticketing_api.exceptions import register_exception_handlers
from ticketing_api.middleware.correlation import CorrelationIdMiddleware
from ticketing_api.routes import catalog_router, checkout_router, health_router, webhooks_router


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title="Ticket Checkout API",
        description="Cart checkout through Stripe and fulfilment hand-off",
        version=__version__,
    )
    application.add_middleware(CorrelationIdMiddleware)
    # Outermost: preflights are answered before correlation or routing
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Correlation-ID"],
        expose_headers=["X-Correlation-ID"],
    )
    register_exception_handlers(application)

    for router in (health_router, catalog_router, checkout_router, webhooks_router):
        application.include_router(router)
    return application


app = create_app()
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = False) -> None:
    """Serve ``app`` with uvicorn; ``reload`` watches ``src`` for local development."""
    import uvicorn

    if reload:
        uvicorn.run("ticketing_api.main:app", host=host, port=port, reload=True, reload_dirs=["src"])
        return
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
