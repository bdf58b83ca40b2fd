from __future__ import annotations

import logging
from typing import Optional

from sensitrack.errors import StoreWriteFailed, TrackerError
from sensitrack.notes import clean_note
from sensitrack.schemas import ProductNote
from sensitrack.storage.stores import ProductNoteStore

logger = logging.getLogger(__name__)


class ProductNoteService:
    """One free-text note per product and user; saving twice edits the note."""

    def __init__(self, store: ProductNoteStore) -> None:
        self.store = store

    async def note_for(self, user_id: str, product_code: str) -> Optional[ProductNote]:
        for note in await self.store.find_all(user_id):
            if note.product_code == product_code:
                return note
        return None

    async def save(self, user_id: str, product_code: str, note: str, rating: Optional[int] = None) -> ProductNote:
        text, rating = clean_note(note, rating)
        existing = await self.note_for(user_id, product_code)
        try:
            if existing is not None:
                saved = await self.store.update(user_id, existing.id, text, rating)
            else:
                saved = await self.store.add(user_id, product_code, text, rating)
        except TrackerError:
            raise
        except Exception as exc:
            raise StoreWriteFailed(f"saving note for {product_code}: {exc}") from exc
        logger.info("note %s saved user=%s product=%s chars=%s", saved.id, user_id, product_code, len(text))
        return saved
