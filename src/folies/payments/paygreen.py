"""PayGreen HTTP client.

Only the two calls the app needs: the hosted card registration page
("cardprint") and zero-amount transactions on a registered card.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import httpx
import structlog

from folies.config import Settings, get_settings

logger = structlog.get_logger()


class PayGreenError(Exception):
    """Base class for provider failures."""


class PayGreenUnavailableError(PayGreenError):
    """The provider could not be reached (network error or timeout)."""


class PayGreenAPIError(PayGreenError):
    """The provider answered with an error status."""

    def __init__(self, status_code: int, details: Any) -> None:  # noqa: ANN401
        super().__init__(f"PayGreen responded with HTTP {status_code}")
        self.status_code = status_code
        self.details = details


class PayGreenClient:
    """Thin async wrapper over the PayGreen REST API."""

    def __init__(
        self,
        api_key: str,
        shop_id: str,
        base_url: str = "https://api.paygreen.fr",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.shop_id = shop_id
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> PayGreenClient:
        return cls(
            api_key=settings.paygreen_api_key,
            shop_id=settings.paygreen_shop_id,
            base_url=settings.paygreen_base_url,
            timeout=settings.paygreen_timeout_seconds,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.shop_id)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.post(
                path,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as e:
            logger.warning("paygreen_unreachable", path=path, error=str(e))
            raise PayGreenUnavailableError(str(e)) from e

        if response.is_error:
            try:
                details: Any = response.json()
            except ValueError:
                details = response.text
            logger.warning("paygreen_error", path=path, status=response.status_code)
            raise PayGreenAPIError(response.status_code, details)

        try:
            return response.json()
        except ValueError as e:
            raise PayGreenAPIError(502, response.text) from e

    async def create_card_print(
        self,
        order_id: str,
        return_url: str,
        notify_url: str,
        buyer_email: str,
        metadata: dict[str, str],
    ) -> str:
        """Start a card registration. Returns the hosted page URL."""
        data = await self._post(
            f"/api/{self.shop_id}/payins/cardprint",
            {
                "order_id": order_id,
                "returned_url": return_url,
                "notified_url": notify_url,
                "buyer": {"email": buyer_email},
                "metadata": metadata,
            },
        )
        url = (data.get("data") or {}).get("url") or data.get("url")
        if not url:
            raise PayGreenAPIError(502, data)
        return url

    async def create_cash_transaction(
        self,
        instrument_id: str,
        order_id: str,
        amount: int,
        metadata: dict[str, str],
    ) -> str:
        """Charge ``amount`` cents on a registered card. Returns the transaction id."""
        data = await self._post(
            "/api/2.0/payins/transaction/cash",
            {
                "shopId": self.shop_id,
                "amount": amount,
                "currency": "EUR",
                "orderId": order_id,
                "instrumentId": instrument_id,
                "metadata": metadata,
            },
        )
        return str((data.get("data") or {}).get("id") or data.get("id") or "")


async def get_paygreen_client() -> AsyncGenerator[PayGreenClient, None]:
    """Yield a PayGreen client for one request (FastAPI dependency)."""
    client = PayGreenClient.from_settings(get_settings())
    try:
        yield client
    finally:
        await client.aclose()
