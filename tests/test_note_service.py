import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from sensitrack import errors
from sensitrack.notes import NOTE_CHARACTER_LIMIT, clean_note
from sensitrack.services.note_service import ProductNoteService
from sensitrack.storage.memory import InMemoryProductNoteStore

NOW = datetime(2024, 6, 3, 10, 0, tzinfo=timezone.utc)


class SteppingClock:
    def __init__(self):
        self.now = NOW

    def __call__(self):
        self.now += timedelta(minutes=1)
        return self.now


def test_clean_note_trims_and_enforces_limits():
    assert clean_note("  crunchy  ") == ("crunchy", None)
    assert clean_note("x" * NOTE_CHARACTER_LIMIT, 5) == ("x" * NOTE_CHARACTER_LIMIT, 5)
    with pytest.raises(errors.InvalidNote):
        clean_note("x" * (NOTE_CHARACTER_LIMIT + 1))
    with pytest.raises(errors.InvalidNote):
        clean_note("   ")
    with pytest.raises(errors.InvalidNote) as exc_info:
        clean_note("fine", 6)
    assert "Rating" in exc_info.value.user_message


def test_second_save_edits_the_existing_note():
    store = InMemoryProductNoteStore(clock=SteppingClock())
    service = ProductNoteService(store)

    first = asyncio.run(service.save("u1", "P1", "Bloated after", 2))
    second = asyncio.run(service.save("u1", "P1", "Bloated after two bars"))

    assert second.id == first.id
    assert second.note == "Bloated after two bars"
    assert second.rating == 2
    assert second.updated_at > first.updated_at
    assert len(asyncio.run(store.find_all("u1"))) == 1


def test_notes_are_per_user_and_product():
    service = ProductNoteService(InMemoryProductNoteStore())
    asyncio.run(service.save("u1", "P1", "ok"))
    asyncio.run(service.save("u1", "P2", "great", 5))

    assert asyncio.run(service.note_for("u1", "P2")).rating == 5
    assert asyncio.run(service.note_for("u2", "P1")) is None


def test_update_of_foreign_note_is_rejected():
    store = InMemoryProductNoteStore()
    note = asyncio.run(store.add("u1", "P1", "mine"))
    with pytest.raises(errors.NoteNotFound):
        asyncio.run(store.update("u2", note.id, "theirs"))


def test_invalid_note_is_not_stored():
    store = InMemoryProductNoteStore()
    with pytest.raises(errors.InvalidNote):
        asyncio.run(ProductNoteService(store).save("u1", "P1", "x" * 501))
    assert asyncio.run(store.find_all("u1")) == []


class BrokenNoteStore(InMemoryProductNoteStore):
    async def add(self, user_id, product_code, note, rating=None):
        raise RuntimeError("disk full")


def test_store_failure_becomes_write_error():
    with pytest.raises(errors.StoreWriteFailed):
        asyncio.run(ProductNoteService(BrokenNoteStore()).save("u1", "P1", "note"))
