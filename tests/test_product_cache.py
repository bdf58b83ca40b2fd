import asyncio
from datetime import datetime, timedelta, timezone

from sensitrack.schemas import Product, ScoredProduct
from sensitrack.storage.product_cache import (
    CachedProductCatalog,
    JsonFileCacheStorage,
    MemoryCacheStorage,
    ProductCache,
)

T0 = datetime(2024, 6, 1, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


def _p(code, name="Thing", ingredients=""):
    return Product(code=code, product_name=name, ingredients_text=ingredients)


def test_put_and_get_tracks_hits():
    cache = ProductCache(MemoryCacheStorage(), max_size=10, max_age_days=30, clock=FakeClock())
    cache.put(_p("A", "Apple Juice"))

    assert cache.get("A").product_name == "Apple Juice"
    assert cache.get("missing") is None
    stats = cache.stats()
    assert stats.total_products == 1
    assert stats.hit_rate == 50.0
    assert stats.most_accessed_code == "A"


def test_preload_strips_scores_and_keeps_existing_entries():
    cache = ProductCache(MemoryCacheStorage(), max_size=10, max_age_days=30, clock=FakeClock())
    cache.put(_p("A", "Original"))
    added = cache.preload([ScoredProduct(code="A", product_name="Replacement", relevance_score=5), ScoredProduct(code="B", product_name="Bread", relevance_score=9)])

    assert added == 1
    assert cache.get("A").product_name == "Original"
    assert type(cache.get("B")) is Product


def test_entries_expire_after_max_age():
    clock = FakeClock()
    cache = ProductCache(MemoryCacheStorage(), max_size=10, max_age_days=30, clock=clock)
    cache.put(_p("A"))
    clock.now = T0 + timedelta(days=31)
    assert cache.get("A") is None


def test_eviction_drops_least_accessed_first():
    clock = FakeClock()
    cache = ProductCache(MemoryCacheStorage(), max_size=2, max_age_days=30, clock=clock)
    cache.put(_p("A"))
    cache.get("A")
    clock.now = T0 + timedelta(minutes=1)
    cache.put(_p("B"))
    clock.now = T0 + timedelta(minutes=2)
    cache.put(_p("C"))

    codes = {p.code for p in cache.most_accessed(10)}
    assert codes == {"A", "C"}


def test_search_matches_name_brand_and_ingredients():
    cache = ProductCache(MemoryCacheStorage(), max_size=10, max_age_days=30, clock=FakeClock())
    cache.put(_p("A", "Oat Drink", "oats, water"))
    cache.put(_p("B", "Rice Drink", "rice, water"))
    assert {p.code for p in cache.search("water")} == {"A", "B"}
    assert [p.code for p in cache.search("OATS")] == ["A"]
    assert cache.search(" ") == []


def test_json_storage_round_trips_between_instances(tmp_path):
    path = tmp_path / "cache" / "products.json"
    first = ProductCache(JsonFileCacheStorage(path), max_size=10, max_age_days=30, clock=FakeClock())
    first.put(_p("A", "Apple", "apple"))

    second = ProductCache(JsonFileCacheStorage(path), max_size=10, max_age_days=30, clock=FakeClock())
    assert second.get("A").ingredients_text == "apple"


def test_corrupt_json_starts_empty(tmp_path):
    path = tmp_path / "products.json"
    path.write_text("{not json", encoding="utf-8")
    cache = ProductCache(JsonFileCacheStorage(path), max_size=10, max_age_days=30, clock=FakeClock())
    assert cache.stats().total_products == 0


def test_clear_and_remove():
    storage = MemoryCacheStorage()
    cache = ProductCache(storage, max_size=10, max_age_days=30, clock=FakeClock())
    cache.put(_p("A"))
    cache.put(_p("B"))
    cache.remove("A")
    assert set(storage.data) == {"B"}
    cache.clear()
    assert storage.data == {}


def test_catalog_adapter_reads_from_cache():
    cache = ProductCache(MemoryCacheStorage(), max_size=10, max_age_days=30, clock=FakeClock())
    cache.put(_p("A", "Apple"))
    catalog = CachedProductCatalog(cache)
    assert asyncio.run(catalog.get_by_code("A")).product_name == "Apple"
    assert asyncio.run(catalog.get_by_code("Z")) is None


class CountingStorage(MemoryCacheStorage):
    def __init__(self):
        super().__init__()
        self.saves = 0

    def save(self, data):
        self.saves += 1
        super().save(data)


def test_lookups_do_not_rewrite_storage_until_flushed():
    storage = CountingStorage()
    cache = ProductCache(storage, max_size=10, max_age_days=30, clock=FakeClock())
    cache.put(_p("A"))
    saves_after_put = storage.saves

    for _ in range(5):
        cache.get("A")
    assert storage.saves == saves_after_put

    cache.flush()
    cache.flush()
    assert storage.saves == saves_after_put + 1
    assert storage.data["A"]["access_count"] == 6
