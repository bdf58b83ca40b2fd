import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sensitrack.config import configure_logging
from sensitrack.data_providers.product_shards import ProductShardClient
from sensitrack.errors import ShardUnavailable
from sensitrack.search.routing import resolve_shard
from sensitrack.services.search_service import SearchEngine


async def main() -> None:
    configure_logging()
    client = ProductShardClient()
    engine = SearchEngine(client)
    for term in ["banana", "nutella", "yogurt"]:
        shard = resolve_shard(term)
        try:
            products = await engine.search(term)
        except ShardUnavailable as exc:
            print(f"query={term} shard={shard.shard_id} error={exc}")
            continue
        print(f"query={term} shard={shard.shard_id}/{shard.sub_collection} products={len(products)}")
        for item in products[:3]:
            print(f"- {item.product_name} | {item.brands} | score={item.relevance_score}")
        print("---")


if __name__ == "__main__":
    asyncio.run(main())
