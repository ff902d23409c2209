# app/services/stock_client.py
import requests

from app.domain.entities import StockLevel
from app.domain.errors import (
    ClientInputError,
    InsufficientStockError,
    NotFoundError,
    TransientStorageError,
)
from app.utils.logging import get_logger
from app.utils.retry import http_retry
from app.utils.settings import STOCK_UPDATE_URL, STOCK_UPDATE_TIMEOUT

logger = get_logger(__name__)


class StockUpdateClient:
    """
    Remote stock-update collaborator, same contract as InventoryLedger.decrement.

    Only connection failures are retried: the request never reached the
    server, so nothing was applied. A read timeout may hide an applied
    decrement and is raised as ambiguous instead.
    """

    def __init__(self, base_url: str | None = None, timeout: float = STOCK_UPDATE_TIMEOUT):
        self.base_url = (base_url or STOCK_UPDATE_URL).rstrip("/")
        self.timeout = timeout

    def decrement(self, product_id: str, quantity: int) -> StockLevel:
        try:
            resp = self._post({"items": [{"productId": product_id, "quantity": quantity}]})
        except requests.ConnectionError as e:
            raise TransientStorageError(f"Stock service unreachable: {e}") from e
        except requests.Timeout as e:
            raise TransientStorageError(f"Stock update timed out: {e}", ambiguous=True) from e

        if resp.status_code == 409:
            raise InsufficientStockError(product_id, quantity)
        if resp.status_code == 404:
            raise NotFoundError(f"Product {product_id} not found")
        if 400 <= resp.status_code < 500:
            raise ClientInputError(self._message(resp))
        if resp.status_code >= 500:
            # the server may have applied part of the request
            raise TransientStorageError(self._message(resp), ambiguous=True)

        result = resp.json()["results"][0]
        return StockLevel(
            product_id=result["productId"],
            remaining_stock=result["remainingStock"],
            in_stock=result["inStock"],
        )

    @http_retry()
    def _post(self, payload: dict) -> requests.Response:
        url = f"{self.base_url}/products/stock"
        logger.info(f"StockUpdateClient POST {url} {payload}")
        return requests.post(url, json=payload, timeout=self.timeout)

    @staticmethod
    def _message(resp: requests.Response) -> str:
        try:
            return resp.json().get("message", resp.text)
        except ValueError:
            return resp.text or f"Stock service returned {resp.status_code}"
