from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from sensitrack.config import settings
from sensitrack.errors import ShardUnavailable
from sensitrack.schemas import Product, ShardDescriptor

logger = logging.getLogger(__name__)


class ProductShardClient:
    SEARCH_PATH = "api/search"

    def __init__(
        self,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        result_limit: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = settings.shard_timeout_seconds if timeout is None else timeout
        self.max_retries = max(0, settings.shard_max_retries if max_retries is None else max_retries)
        self.backoff_seconds = settings.shard_retry_backoff_seconds if backoff_seconds is None else backoff_seconds
        self.result_limit = result_limit or settings.shard_result_limit
        self.transport = transport
        self.last_error: str = ""
        self.last_status: int | None = None
        self.last_url: str = ""

    async def query(
        self,
        shard: ShardDescriptor,
        term: str,
        limit: int | None = None,
        disable_upstream_scoring: bool = True,
    ) -> list[Product]:
        self.last_error = ""
        self.last_status = None
        self.last_url = ""

        params = {
            "q": term,
            "type": "name",
            "limit": str(limit or self.result_limit),
            "debug": "false",
            "noScoring": "true" if disable_upstream_scoring else "false",
        }
        url = shard.base_url.rstrip("/") + "/" + self.SEARCH_PATH
        headers = {"User-Agent": "sensitrack/0.1", "Accept": "application/json"}
        attempts = self.max_retries + 1

        async with httpx.AsyncClient(timeout=self.timeout, headers=headers, transport=self.transport) as client:
            payload: dict[str, Any] | None = None
            for attempt in range(1, attempts + 1):
                try:
                    response = await client.get(url, params=params)
                    self.last_status = response.status_code
                    self.last_url = str(response.request.url)
                    logger.debug(
                        "shard=%s collection=%s attempt=%s/%s status=%s url=%s",
                        shard.shard_id,
                        shard.sub_collection,
                        attempt,
                        attempts,
                        self.last_status,
                        self.last_url,
                    )
                    response.raise_for_status()
                    payload = response.json()
                    self.last_error = ""
                    break
                except httpx.HTTPStatusError as exc:
                    self.last_error = f"shard {shard.shard_id} HTTP {exc.response.status_code}"
                except httpx.TimeoutException:
                    self.last_error = f"shard {shard.shard_id} timeout after {self.timeout}s"
                except httpx.HTTPError as exc:
                    self.last_error = f"shard {shard.shard_id} network error: {exc.__class__.__name__}"
                except ValueError:
                    self.last_error = f"shard {shard.shard_id} returned a non-JSON body"
                logger.debug("shard=%s attempt=%s/%s failed: %s", shard.shard_id, attempt, attempts, self.last_error)
                if attempt < attempts:
                    await asyncio.sleep(self.backoff_seconds)

        if payload is None:
            raise ShardUnavailable(shard.shard_id, self.last_error)

        items = (payload.get("results") or []) if isinstance(payload, dict) else []
        products = [self._to_product(item) for item in items if isinstance(item, dict) and item.get("product_name")]
        logger.debug("shard=%s returned_products=%s term='%s'", shard.shard_id, len(products), term)
        return products

    @staticmethod
    def _to_product(item: dict[str, Any]) -> Product:
        return Product(
            code=str(item.get("code", "")),
            product_name=str(item.get("product_name", "")),
            brands=str(item.get("brands") or ""),
            ingredients_text=str(item.get("ingredients_text") or ""),
            image_url=str(item.get("image_url") or ""),
        )
