"""
External barcode lookup.

Resolves a barcode to product metadata using public product databases:
1. Open Food Facts (free, food products)
2. UPCitemdb (general products, trial tier of 100 requests/day)

Sources are tried in order; the first hit wins. A source that errors or
misses is logged and skipped.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

import httpx
import structlog

from core.config import settings

logger = structlog.get_logger(__name__)

USER_AGENT = "ProductScout/1.0"


@dataclass
class BarcodeProduct:
    """Normalized product data from any lookup source."""

    barcode: str
    name: str
    source: str
    brand: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    confidence: float = 0.8

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class OpenFoodFactsClient:
    """
    Client for the Open Food Facts product API.

    https://wiki.openfoodfacts.org/API
    """

    SOURCE = "open_food_facts"

    def __init__(self, http_client: httpx.AsyncClient, base_url: Optional[str] = None):
        self.http_client = http_client
        self.base_url = (base_url or settings.OPEN_FOOD_FACTS_URL).rstrip("/")

    async def lookup(self, barcode: str) -> Optional[BarcodeProduct]:
        try:
            response = await self.http_client.get(
                f"{self.base_url}/{barcode}.json",
                headers={"User-Agent": USER_AGENT},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("open_food_facts_http_error", barcode=barcode, status_code=e.response.status_code)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("open_food_facts_error", barcode=barcode, error=str(e))
            return None

        product = data.get("product")
        if data.get("status") != 1 or not product:
            return None

        completeness = product.get("completeness")
        return BarcodeProduct(
            barcode=barcode,
            name=product.get("product_name") or product.get("product_name_en") or "Unknown Product",
            source=self.SOURCE,
            brand=product.get("brands") or product.get("brand_owner"),
            description=product.get("generic_name") or product.get("generic_name_en"),
            image_url=product.get("image_front_url") or product.get("image_url"),
            categories=[
                tag.replace("en:", "").replace("-", " ") for tag in product.get("categories_tags") or []
            ],
            confidence=min(float(completeness), 1.0) if completeness else 0.8,
        )


class UPCItemDBClient:
    """
    Client for the UPCitemdb trial lookup endpoint (no API key).

    https://www.upcitemdb.com/wp/docs/main/development/getting-started/
    """

    SOURCE = "upcitemdb"

    def __init__(self, http_client: httpx.AsyncClient, base_url: Optional[str] = None):
        self.http_client = http_client
        self.base_url = base_url or settings.UPCITEMDB_URL

    async def lookup(self, barcode: str) -> Optional[BarcodeProduct]:
        try:
            response = await self.http_client.get(
                self.base_url,
                params={"upc": barcode},
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                logger.warning("upcitemdb_rate_limited", barcode=barcode)
            else:
                logger.warning("upcitemdb_http_error", barcode=barcode, status_code=e.response.status_code)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("upcitemdb_error", barcode=barcode, error=str(e))
            return None

        items = data.get("items") or []
        if data.get("code") != "OK" or not items:
            return None

        item = items[0]
        images = item.get("images") or []
        return BarcodeProduct(
            barcode=barcode,
            name=item.get("title") or "Unknown Product",
            source=self.SOURCE,
            brand=item.get("brand") or None,
            description=item.get("description") or None,
            image_url=images[0] if images else None,
            categories=[item["category"]] if item.get("category") else [],
            confidence=0.75,
        )


class BarcodeLookupClient:
    """
    Multi-source barcode lookup.

    Usage:
        async with BarcodeLookupClient() as lookup:
            product = await lookup.lookup("5000328657950")
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._owns_client = http_client is None
        self.http_client = http_client
        self.sources: list = []
        if http_client is not None:
            self._init_sources(http_client)

    def _init_sources(self, http_client: httpx.AsyncClient) -> None:
        self.sources = [OpenFoodFactsClient(http_client), UPCItemDBClient(http_client)]

    async def __aenter__(self) -> "BarcodeLookupClient":
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
            self._init_sources(self.http_client)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_client and self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None

    async def lookup(self, barcode: str) -> Optional[BarcodeProduct]:
        """Return the first source's hit, or None if no source knows the barcode."""
        for source in self.sources:
            product = await source.lookup(barcode)
            if product is not None:
                logger.debug("barcode_lookup_hit", barcode=barcode, source=product.source)
                return product
        return None
