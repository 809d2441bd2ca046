"""Middleware registration."""

from fastapi import FastAPI

from folies.config import Settings
from folies.middleware.cors import ProviderCORSMiddleware, setup_cors
from folies.middleware.error_handler import setup_error_handlers
from folies.middleware.logging import setup_logging
from folies.middleware.rate_limit import RateLimitMiddleware
from folies.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette runs middleware in reverse-add order (last added = outermost).
    CORS is outermost so it also wraps 429 responses; the provider CORS
    layer sits outside it so browser preflights on /functions/v1 never
    reach the origin allow-list.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
    app.add_middleware(ProviderCORSMiddleware)
