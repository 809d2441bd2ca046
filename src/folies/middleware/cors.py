"""CORS configuration.

The JSON API only answers the app's own origins. The card provider proxy
under /functions/v1 is called from the provider's hosted pages and the
mobile web view, so it answers any origin.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from folies.config import Settings

PROVIDER_PATH_PREFIX = "/functions/v1/"

PROVIDER_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the web app origins on the JSON API."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"],
    )


class ProviderCORSMiddleware(BaseHTTPMiddleware):
    """Permissive CORS for the card provider proxy endpoints."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Answer OPTIONS directly and stamp the permissive headers on every proxy response."""
        if not request.url.path.startswith(PROVIDER_PATH_PREFIX):
            return await call_next(request)

        if request.method == "OPTIONS":
            return Response(status_code=200, headers=PROVIDER_CORS_HEADERS)

        response = await call_next(request)
        response.headers.update(PROVIDER_CORS_HEADERS)
        return response
