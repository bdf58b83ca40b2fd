from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from sensitrack.errors import NoteNotFound, TestAlreadyActive, TestNotFound
from sensitrack.notes import clean_note
from sensitrack.schemas import (
    EliminationTest,
    IngredientReaction,
    Product,
    ProductNote,
    ProductReaction,
    Reaction,
    WishlistItem,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryTestStore:
    """Test records keyed by id.

    `create` refuses a second incomplete test for the same user, which is the
    conditional write that makes the one-active-test rule hold even when two
    callers pass the manager's check at the same time.
    """

    def __init__(self) -> None:
        self._tests: dict[str, EliminationTest] = {}

    async def find_active_test(self, user_id: str) -> Optional[EliminationTest]:
        for test in self._tests.values():
            if test.user_id == user_id and not test.completed:
                return test
        return None

    async def find_by_id(self, user_id: str, test_id: str) -> Optional[EliminationTest]:
        test = self._tests.get(test_id)
        if test is None or test.user_id != user_id:
            return None
        return test

    async def list_for_user(self, user_id: str) -> list[EliminationTest]:
        return [test for test in self._tests.values() if test.user_id == user_id]

    async def create(self, test: EliminationTest) -> EliminationTest:
        active = await self.find_active_test(test.user_id)
        if active is not None:
            raise TestAlreadyActive(active.id, f"store rejected second active test for user {test.user_id}")
        stored = test if test.id else test.model_copy(update={"id": uuid.uuid4().hex})
        self._tests[stored.id] = stored
        return stored

    async def update(self, user_id: str, test_id: str, patch: dict[str, Any]) -> EliminationTest:
        current = await self.find_by_id(user_id, test_id)
        if current is None:
            raise TestNotFound(f"test {test_id} does not exist for user {user_id}")
        updated = EliminationTest.model_validate({**current.model_dump(), **patch})
        self._tests[test_id] = updated
        return updated


class _KeyedReactions:
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or utc_now
        self._rows: dict[tuple[str, str], Any] = {}

    def _values_for(self, user_id: str) -> list[Any]:
        return [row for (owner, _), row in self._rows.items() if owner == user_id]


class InMemoryProductReactionStore(_KeyedReactions):
    async def upsert(self, user_id: str, product_code: str, reaction: Reaction) -> ProductReaction:
        now = self.clock()
        key = (user_id, product_code)
        existing = self._rows.get(key)
        row = ProductReaction(
            user_id=user_id,
            product_code=product_code,
            reaction=Reaction(reaction),
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._rows[key] = row
        return row

    async def delete(self, user_id: str, product_code: str) -> None:
        self._rows.pop((user_id, product_code), None)

    async def find_all(self, user_id: str) -> list[ProductReaction]:
        return self._values_for(user_id)


class InMemoryIngredientReactionStore(_KeyedReactions):
    async def upsert(self, user_id: str, ingredient_name: str, reaction: Reaction) -> IngredientReaction:
        now = self.clock()
        key = (user_id, ingredient_name.strip().lower())
        existing = self._rows.get(key)
        row = IngredientReaction(
            user_id=user_id,
            ingredient_name=key[1],
            reaction=Reaction(reaction),
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._rows[key] = row
        return row

    async def delete(self, user_id: str, ingredient_name: str) -> None:
        self._rows.pop((user_id, ingredient_name.strip().lower()), None)

    async def find_all(self, user_id: str) -> list[IngredientReaction]:
        return self._values_for(user_id)


class InMemoryWishlistStore:
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or utc_now
        self._items: dict[str, WishlistItem] = {}

    async def add(self, user_id: str, product_code: str) -> WishlistItem:
        for item in self._items.values():
            if item.user_id == user_id and item.product_code == product_code:
                return item
        item = WishlistItem(id=uuid.uuid4().hex, user_id=user_id, product_code=product_code, added_at=self.clock())
        self._items[item.id] = item
        return item

    async def remove(self, user_id: str, item_id: str) -> None:
        item = self._items.get(item_id)
        if item is not None and item.user_id == user_id:
            del self._items[item_id]

    async def find_all(self, user_id: str) -> list[WishlistItem]:
        return [item for item in self._items.values() if item.user_id == user_id]


class InMemoryProductNoteStore:
    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or utc_now
        self._notes: dict[str, ProductNote] = {}

    async def add(self, user_id: str, product_code: str, note: str, rating: Optional[int] = None) -> ProductNote:
        text, rating = clean_note(note, rating)
        now = self.clock()
        row = ProductNote(
            id=uuid.uuid4().hex,
            user_id=user_id,
            product_code=product_code,
            note=text,
            rating=rating,
            created_at=now,
            updated_at=now,
        )
        self._notes[row.id] = row
        return row

    async def update(self, user_id: str, note_id: str, note: str, rating: Optional[int] = None) -> ProductNote:
        current = self._notes.get(note_id)
        if current is None or current.user_id != user_id:
            raise NoteNotFound(f"note {note_id} not found for user {user_id}")
        text, rating = clean_note(note, rating)
        # A missing rating keeps the stored one.
        updated = current.model_copy(
            update={"note": text, "rating": current.rating if rating is None else rating, "updated_at": self.clock()}
        )
        self._notes[note_id] = updated
        return updated

    async def find_all(self, user_id: str) -> list[ProductNote]:
        return [note for note in self._notes.values() if note.user_id == user_id]


class InMemoryProductCatalog:
    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products = {product.code: product for product in products}

    def add(self, product: Product) -> None:
        self._products[product.code] = product

    async def get_by_code(self, code: str) -> Optional[Product]:
        return self._products.get(code)
