from __future__ import annotations


def split_ingredients(text: str) -> list[tuple[str, str]]:
    """Return `(name, display_name)` pairs from a comma-separated ingredient list.

    `name` is the lower-cased identity used by reaction stores, `display_name`
    the trimmed text as first written. Order follows the label, duplicates
    collapse onto their first occurrence.
    """
    seen: set[str] = set()
    pairs: list[tuple[str, str]] = []
    for chunk in (text or "").split(","):
        display = chunk.strip()
        if not display:
            continue
        name = display.lower()
        if name in seen:
            continue
        seen.add(name)
        pairs.append((name, display))
    return pairs


def parse_ingredients(text: str) -> list[str]:
    return [name for name, _ in split_ingredients(text)]
