from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

from pydantic import BaseModel

from sensitrack.config import settings
from sensitrack.schemas import Product
from sensitrack.storage.memory import Clock, utc_now

logger = logging.getLogger(__name__)


class CacheStorage(Protocol):
    def load(self) -> dict[str, Any]: ...

    def save(self, data: dict[str, Any]) -> None: ...


class MemoryCacheStorage:
    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    def load(self) -> dict[str, Any]:
        return dict(self.data)

    def save(self, data: dict[str, Any]) -> None:
        self.data = dict(data)


class JsonFileCacheStorage:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("product cache at %s unreadable, starting empty: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


class CachedProduct(BaseModel):
    product: Product
    cached_at: datetime
    last_accessed: datetime
    access_count: int = 0


class CacheStats(BaseModel):
    total_products: int
    hit_rate: float
    most_accessed_code: Optional[str] = None
    oldest_cached_at: Optional[datetime] = None


class ProductCache:
    """Product details kept between sessions so tests can resolve ingredients.

    Entries older than `max_age_days` are dropped; past `max_size` the least
    accessed (then least recently accessed) entries are evicted.
    """

    def __init__(
        self,
        storage: CacheStorage | None = None,
        max_size: int | None = None,
        max_age_days: int | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.storage = storage or MemoryCacheStorage()
        self.max_size = max_size or settings.product_cache_max_size
        self.max_age = timedelta(days=max_age_days or settings.product_cache_max_age_days)
        self.clock = clock or utc_now
        self.requests = 0
        self.hits = 0
        self._entries: dict[str, CachedProduct] | None = None
        self._dirty = False

    @property
    def entries(self) -> dict[str, CachedProduct]:
        if self._entries is None:
            raw = self.storage.load()
            self._entries = {}
            for code, value in raw.items():
                try:
                    self._entries[code] = CachedProduct.model_validate(value)
                except ValueError:
                    logger.warning("dropping malformed cache entry for product %s", code)
            if self._prune():
                self._save()
        return self._entries

    def get(self, code: str) -> Optional[Product]:
        """Return a cached product. Access stats stay in memory until `flush`."""
        self.requests += 1
        entry = self.entries.get(code)
        if entry is None:
            return None
        if self.clock() - entry.cached_at > self.max_age:
            del self.entries[code]
            self._save()
            return None
        self.hits += 1
        entry.access_count += 1
        entry.last_accessed = self.clock()
        self._dirty = True
        return entry.product

    def put(self, product: Product) -> None:
        now = self.clock()
        self.entries[product.code] = CachedProduct(
            product=Product.model_validate(product.model_dump(include=set(Product.model_fields))),
            cached_at=now,
            last_accessed=now,
            access_count=1,
        )
        self._prune()
        self._save()

    def preload(self, products: Iterable[Product]) -> int:
        now = self.clock()
        added = 0
        for product in products:
            if not product.code or product.code in self.entries:
                continue
            self.entries[product.code] = CachedProduct(
                product=Product.model_validate(product.model_dump(include=set(Product.model_fields))),
                cached_at=now,
                last_accessed=now,
                access_count=0,
            )
            added += 1
        if added:
            self._prune()
            self._save()
        return added

    def remove(self, code: str) -> None:
        if self.entries.pop(code, None) is not None:
            self._save()

    def clear(self) -> None:
        self._entries = {}
        self.requests = 0
        self.hits = 0
        self._save()

    def search(self, term: str, limit: int = 20) -> list[Product]:
        needle = (term or "").strip().lower()
        if not needle:
            return []
        matches = [
            entry
            for entry in self.entries.values()
            if needle in entry.product.product_name.lower()
            or needle in entry.product.brands.lower()
            or needle in entry.product.ingredients_text.lower()
        ]
        matches.sort(key=lambda entry: entry.access_count, reverse=True)
        return [entry.product for entry in matches[:limit]]

    def most_accessed(self, limit: int = 10) -> list[Product]:
        ranked = sorted(self.entries.values(), key=lambda entry: entry.access_count, reverse=True)
        return [entry.product for entry in ranked[:limit]]

    def stats(self) -> CacheStats:
        entries = list(self.entries.values())
        most = max(entries, key=lambda entry: entry.access_count, default=None)
        oldest = min((entry.cached_at for entry in entries), default=None)
        return CacheStats(
            total_products=len(entries),
            hit_rate=(self.hits / self.requests * 100.0) if self.requests else 0.0,
            most_accessed_code=most.product.code if most else None,
            oldest_cached_at=oldest,
        )

    def _prune(self) -> bool:
        entries = self._entries or {}
        now = self.clock()
        expired = [code for code, entry in entries.items() if now - entry.cached_at > self.max_age]
        for code in expired:
            del entries[code]

        overflow = len(entries) - self.max_size
        if overflow > 0:
            ranked = sorted(entries.items(), key=lambda kv: (kv[1].access_count, kv[1].last_accessed))
            for code, _ in ranked[:overflow]:
                del entries[code]
        if expired or overflow > 0:
            logger.debug("product cache pruned expired=%s evicted=%s", len(expired), max(0, overflow))
        return bool(expired) or overflow > 0

    def flush(self) -> None:
        if self._dirty:
            self._save()

    def _save(self) -> None:
        self._dirty = False
        self.storage.save({code: entry.model_dump(mode="json") for code, entry in (self._entries or {}).items()})


class CachedProductCatalog:
    def __init__(self, cache: ProductCache) -> None:
        self.cache = cache

    async def get_by_code(self, code: str) -> Optional[Product]:
        return self.cache.get(code)
