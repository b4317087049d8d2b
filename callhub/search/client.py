"""Live product search used as a fallback when the local catalogue misses."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from callhub.errors import DependencyError
from callhub.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SearchCandidate:
    """One ranked search hit."""
    name: str
    price: float | None = None
    url: str | None = None
    in_stock: bool = True
    score: float = 0.0


class ProductSearch(ABC):
    """External search interface."""

    @abstractmethod
    async def query(self, text: str, limit: int = 3) -> list[SearchCandidate]:
        """Search for products, best match first.

        Raises:
            DependencyError: the search backend is unreachable or failed.
        """

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""


class HttpProductSearch(ProductSearch):
    """JSON search API client.

    Expects ``GET {base_url}?q=...&limit=...`` to return
    ``{"results": [{"name", "price", "url", "in_stock", "score"}, ...]}``.
    """

    def __init__(self, base_url: str, api_key: str | None = None, timeout_seconds: float = 10.0):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._base_url = base_url
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout_seconds)

    async def query(self, text: str, limit: int = 3) -> list[SearchCandidate]:
        try:
            response = await self._client.get(self._base_url, params={"q": text, "limit": limit})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("product_search_failed", query=text, error=str(e))
            raise DependencyError("product_search", str(e)) from e

        candidates = []
        for item in payload.get("results", []):
            if not item.get("name"):
                continue
            price = item.get("price")
            candidates.append(
                SearchCandidate(
                    name=item["name"],
                    price=float(price) if price is not None else None,
                    url=item.get("url"),
                    in_stock=item.get("in_stock", True) is not False,
                    score=float(item.get("score") or 0.0),
                )
            )
        candidates.sort(key=lambda c: c.score, reverse=True)
        logger.info("product_search_complete", query=text, results=len(candidates))
        return candidates[:limit]

    async def close(self) -> None:
        await self._client.aclose()
