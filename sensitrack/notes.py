from __future__ import annotations

from typing import Optional

from sensitrack.errors import InvalidNote

NOTE_CHARACTER_LIMIT = 500


def clean_note(note: str, rating: Optional[int] = None) -> tuple[str, Optional[int]]:
    """Trim a product note and check it against the limits the backend stores."""
    text = (note or "").strip()
    if not text:
        raise InvalidNote("note is empty")
    if len(text) > NOTE_CHARACTER_LIMIT:
        raise InvalidNote(f"note has {len(text)} characters, limit is {NOTE_CHARACTER_LIMIT}")
    if rating is not None and not 1 <= int(rating) <= 5:
        raise InvalidNote(f"rating {rating} outside 1-5", user_message="Rating must be between 1 and 5.")
    return text, None if rating is None else int(rating)
