from __future__ import annotations

from typing import Any, Optional, Protocol

from sensitrack.schemas import (
    EliminationTest,
    IngredientReaction,
    Product,
    ProductNote,
    ProductReaction,
    Reaction,
    WishlistItem,
)


class TestStore(Protocol):
    async def find_active_test(self, user_id: str) -> Optional[EliminationTest]: ...

    async def find_by_id(self, user_id: str, test_id: str) -> Optional[EliminationTest]: ...

    async def list_for_user(self, user_id: str) -> list[EliminationTest]: ...

    async def create(self, test: EliminationTest) -> EliminationTest: ...

    async def update(self, user_id: str, test_id: str, patch: dict[str, Any]) -> EliminationTest: ...


class ProductReactionStore(Protocol):
    async def upsert(self, user_id: str, product_code: str, reaction: Reaction) -> ProductReaction: ...

    async def delete(self, user_id: str, product_code: str) -> None: ...

    async def find_all(self, user_id: str) -> list[ProductReaction]: ...


class IngredientReactionStore(Protocol):
    async def upsert(self, user_id: str, ingredient_name: str, reaction: Reaction) -> IngredientReaction: ...

    async def delete(self, user_id: str, ingredient_name: str) -> None: ...

    async def find_all(self, user_id: str) -> list[IngredientReaction]: ...


class WishlistStore(Protocol):
    async def add(self, user_id: str, product_code: str) -> WishlistItem: ...

    async def remove(self, user_id: str, item_id: str) -> None: ...

    async def find_all(self, user_id: str) -> list[WishlistItem]: ...


class ProductNoteStore(Protocol):
    async def add(self, user_id: str, product_code: str, note: str, rating: Optional[int] = None) -> ProductNote: ...

    async def update(self, user_id: str, note_id: str, note: str, rating: Optional[int] = None) -> ProductNote: ...

    async def find_all(self, user_id: str) -> list[ProductNote]: ...

class ProductCatalog(Protocol):
    async def get_by_code(self, code: str) -> Optional[Product]: ...
