# shop/services/product_client.py
import requests

from shop.domain.errors import NotFound
from shop.utils.retry import http_retry
from shop.utils.settings import PRODUCT_SERVICE_URL
from shop.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """Read-only client of the product catalog (price, stock, status)."""

    def __init__(self, base_url: str | None = None, timeout: int = 2):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        resp = requests.get(url, timeout=self.timeout)
        #404 to odpowiedz, nie blad sieci - bez retry
        if resp.status_code != 404:
            resp.raise_for_status()
        return resp

    def fetch_product(self, product_id: int) -> dict:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = self._get(url)
        if resp.status_code == 404:
            raise NotFound(f"Product {product_id} not found")
        return resp.json()
