"""
Adapter for the external order/cart system.

The core hands a locked attempt over to the order system with the lock
token as correlation key and gets back the URL the customer is redirected
to. Revalidation uses remove_from_cart to evict superseded lines.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional

import httpx

from coworking.core.config import Settings
from coworking.core.errors import ExternalDependencyUnavailable, Misconfiguration
from coworking.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartHandoff:
    product_id: str
    resource_id: int
    title: str
    tier: str
    start: date
    end: date
    price: float
    token: str

    def to_payload(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": 1,
            "price": self.price,
            "metadata": {
                "resource_id": self.resource_id,
                "resource_title": self.title,
                "tier": self.tier,
                "start": self.start.isoformat(),
                "end": self.end.isoformat(),
                "lock_token": self.token,
            },
        }


class OrderGateway(ABC):

    @abstractmethod
    async def add_to_cart(self, handoff: CartHandoff) -> str:
        """
        Hand the attempt to the order system.

        Returns:
            Redirect target for the customer (cart/checkout URL)

        Raises:
            ExternalDependencyUnavailable if the order system rejects or
            cannot be reached
        """
        pass

    @abstractmethod
    async def remove_from_cart(self, token: str) -> None:
        """Evict the cart line correlated with token."""
        pass

    async def close(self) -> None:
        pass


class HttpOrderGateway(OrderGateway):
    """JSON-over-HTTP order system client."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.ORDER_SYSTEM_URL.rstrip("/")
        self.timeout = settings.ORDER_SYSTEM_TIMEOUT
        self.api_key = settings.ORDER_SYSTEM_API_KEY
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if not self.base_url:
            raise Misconfiguration("Order system URL is not configured")
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, headers=headers)
        return self._client

    async def add_to_cart(self, handoff: CartHandoff) -> str:
        client = self._get_client()
        try:
            response = await client.post("/cart/items", json=handoff.to_payload())
            response.raise_for_status()
            redirect_url = response.json().get("redirect_url")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("order_system_handoff_failed", resource_id=handoff.resource_id, error=str(e))
            raise ExternalDependencyUnavailable("Could not add the reservation to the cart")

        if not redirect_url:
            logger.error("order_system_handoff_failed", resource_id=handoff.resource_id, error="no redirect_url")
            raise ExternalDependencyUnavailable("Could not add the reservation to the cart")

        logger.info("order_system_handoff", resource_id=handoff.resource_id, product_id=handoff.product_id)
        return redirect_url

    async def remove_from_cart(self, token: str) -> None:
        client = self._get_client()
        try:
            response = await client.delete(f"/cart/items/{token}")
            if response.status_code != 404:
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("order_system_evict_failed", error=str(e))
            raise ExternalDependencyUnavailable("Could not remove the reservation from the cart")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
