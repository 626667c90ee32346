"""HTTP client for the clinic inventory service."""

import asyncio
from typing import Optional

import aiohttp

from clinicflow.application.ports.services.inventory_service import (
    InventoryService,
    StockDecrementResult,
)
from clinicflow.core.config import get_settings
from clinicflow.core.exceptions import InventoryServiceError


class HttpInventoryService(InventoryService):
    """Calls ``POST {base_url}/inventory/decrement``.

    The service answers 200 on success and 409 when stock is insufficient;
    anything else is treated as a transport failure.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings().inventory
        self._base_url = (base_url if base_url is not None else settings.base_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.api_key
        self._timeout = aiohttp.ClientTimeout(
            total=timeout_seconds if timeout_seconds is not None else settings.timeout_seconds
        )

    async def decrement_stock(self, item_name: str, quantity: int) -> StockDecrementResult:
        if not self._base_url:
            raise InventoryServiceError("INVENTORY_BASE_URL is not configured")

        url = f"{self._base_url}/inventory/decrement"
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-API-Key"] = self._api_key
        payload = {"item_name": item_name, "quantity": quantity}

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(url, json=payload, headers=headers) as response:
                    if response.status == 200:
                        return StockDecrementResult.OK
                    if response.status == 409:
                        return StockDecrementResult.INSUFFICIENT_STOCK
                    error_text = await response.text()
                    raise InventoryServiceError(
                        f"Unexpected status {response.status}",
                        {"item_name": item_name, "body": error_text[:200]},
                    )
        except aiohttp.ClientError as e:
            raise InventoryServiceError(str(e), {"item_name": item_name}) from e
        except asyncio.TimeoutError as e:
            raise InventoryServiceError("request timed out", {"item_name": item_name}) from e
