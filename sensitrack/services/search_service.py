from __future__ import annotations

import asyncio
import logging

from sensitrack.data_providers.product_shards import ProductShardClient
from sensitrack.errors import ShardUnavailable
from sensitrack.schemas import Product, ScoredProduct, ShardDescriptor
from sensitrack.search.routing import all_shards, resolve_shard
from sensitrack.search.scoring import score

logger = logging.getLogger(__name__)


class SearchEngine:
    """Query the product shards and rank the merged hits locally.

    Upstream ordering is never trusted: every hit is rescored with
    `sensitrack.search.scoring.score` and zero-score hits are dropped.
    """

    def __init__(self, client: ProductShardClient | None = None) -> None:
        self.client = client or ProductShardClient()

    async def search(self, term: str) -> list[ScoredProduct]:
        query = (term or "").strip()
        shard = resolve_shard(query)
        if shard is not None:
            batches = [await self.client.query(shard, query)]
        else:
            batches = await self._query_all(all_shards(), query)

        merged = self._merge(batches)
        ranked = self.rank(merged, query)
        logger.debug("search term='%s' merged=%s ranked=%s", query, len(merged), len(ranked))
        for idx, item in enumerate(ranked[:3], start=1):
            logger.debug("top#%s '%s' (%s) score=%s", idx, item.product_name, item.brands, item.relevance_score)
        return ranked

    async def _query_all(self, shards: list[ShardDescriptor], query: str) -> list[list[Product]]:
        tasks = [self.client.query(shard, query) for shard in shards]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        batches: list[list[Product]] = []
        failures: list[ShardUnavailable] = []
        for shard, outcome in zip(shards, outcomes):
            if isinstance(outcome, ShardUnavailable):
                logger.warning("shard %s skipped for term='%s': %s", shard.shard_id, query, outcome)
                failures.append(outcome)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            batches.append(outcome)

        if not batches and failures:
            raise ShardUnavailable(None, "; ".join(str(f) for f in failures))
        return batches

    @staticmethod
    def _merge(batches: list[list[Product]]) -> list[Product]:
        seen: set[str] = set()
        merged: list[Product] = []
        for batch in batches:
            for product in batch:
                if product.code in seen:
                    continue
                seen.add(product.code)
                merged.append(product)
        return merged

    @staticmethod
    def rank(products: list[Product], term: str) -> list[ScoredProduct]:
        scored = [
            ScoredProduct(**product.model_dump(), relevance_score=score(product, term))
            for product in products
        ]
        kept = [item for item in scored if item.relevance_score > 0]
        # sorted() is stable, so equal scores keep merge order.
        return sorted(kept, key=lambda item: item.relevance_score, reverse=True)
