import asyncio

import pytest

from sensitrack import errors
from sensitrack.schemas import Product
from sensitrack.services.search_service import SearchEngine


class FakeShardClient:
    def __init__(self, results=None, failing=()):
        self.results = results or {}
        self.failing = set(failing)
        self.calls = []

    async def query(self, shard, term, limit=None, disable_upstream_scoring=True):
        self.calls.append((shard.shard_id, shard.sub_collection, term))
        if shard.shard_id in self.failing:
            raise errors.ShardUnavailable(shard.shard_id, "down")
        return list(self.results.get(shard.shard_id, []))


def _p(code, name, brands=""):
    return Product(code=code, product_name=name, brands=brands)


def test_banana_scenario_queries_only_shard_one():
    client = FakeShardClient({1: [_p("X2", "Organic Banana", "Nature"), _p("X1", "Banana Chips", "Acme")]})
    results = asyncio.run(SearchEngine(client).search("Banana"))

    assert client.calls == [(1, "a_b", "Banana")]
    assert [p.code for p in results] == ["X1", "X2"]
    assert results[0].relevance_score > results[1].relevance_score > 0


def test_zero_score_results_are_filtered():
    client = FakeShardClient({2: [_p("1", "Oat Milk"), _p("2", "Rice Cakes")]})
    results = asyncio.run(SearchEngine(client).search("milk"))
    assert [p.code for p in results] == ["1"]


def test_scores_are_non_increasing_and_ties_keep_merge_order():
    client = FakeShardClient({2: [_p("a", "Milk"), _p("b", "Oat Milk"), _p("c", "Milk"), _p("d", "Almond Milk")]})
    results = asyncio.run(SearchEngine(client).search("milk"))
    scores = [p.relevance_score for p in results]
    assert scores == sorted(scores, reverse=True)
    assert [p.code for p in results] == ["a", "c", "b", "d"]


def test_single_shard_failure_propagates():
    client = FakeShardClient(failing={2})
    with pytest.raises(errors.ShardUnavailable):
        asyncio.run(SearchEngine(client).search("milk"))


def test_empty_term_queries_both_shards_and_dedups():
    client = FakeShardClient({1: [_p("dup", "Apple", "First")], 2: [_p("dup", "Apple", "Second"), _p("z", "Zucchini")]})
    results = asyncio.run(SearchEngine(client).search("  "))

    assert sorted(call[0] for call in client.calls) == [1, 2]
    codes = [p.code for p in results]
    assert codes.count("dup") == 1
    assert next(p for p in results if p.code == "dup").brands == "First"


def test_dual_query_survives_one_failed_shard():
    client = FakeShardClient({2: [_p("z", "Zucchini")]}, failing={1})
    results = asyncio.run(SearchEngine(client).search(""))
    assert [p.code for p in results] == ["z"]


def test_dual_query_fails_when_both_shards_fail():
    client = FakeShardClient(failing={1, 2})
    with pytest.raises(errors.ShardUnavailable):
        asyncio.run(SearchEngine(client).search(""))


def test_rank_returns_scored_copies():
    ranked = SearchEngine.rank([_p("1", "Peanut Butter", "Acme")], "peanut")
    assert ranked[0].relevance_score == 1080
    assert ranked[0].product_name == "Peanut Butter"


class RendezvousShardClient:
    """Each query waits until both shard queries have started."""

    def __init__(self):
        self.started = 0
        self.both_started = None

    async def query(self, shard, term, limit=None, disable_upstream_scoring=True):
        if self.both_started is None:
            self.both_started = asyncio.Event()
        self.started += 1
        if self.started == 2:
            self.both_started.set()
        await asyncio.wait_for(self.both_started.wait(), timeout=1)
        return [_p(f"p{shard.shard_id}", f"Item {shard.shard_id}")]


def test_dual_query_runs_both_shards_at_once():
    client = RendezvousShardClient()
    asyncio.run(SearchEngine(client).search(""))
    assert client.started == 2
    assert client.both_started.is_set()
