from __future__ import annotations

from sensitrack.schemas import Product

NAME_PREFIX = 1000
NAME_WORD = 800
BRAND_PREFIX = 600
BRAND_WORD = 400
NAME_ANYWHERE = 200
BRAND_ANYWHERE = 100

SHORT_NAME_BONUS = 50
SHORT_NAME_MAX_LENGTH = 50
FEW_WORDS_BONUS = 30
FEW_WORDS_MAX = 3


def _starts_word(text: str, term: str) -> bool:
    return f" {term}" in text or f"-{term}" in text


def _match_tier(name: str, brands: str, term: str) -> int:
    if name.startswith(term):
        return NAME_PREFIX
    if _starts_word(name, term):
        return NAME_WORD
    if brands.startswith(term):
        return BRAND_PREFIX
    if _starts_word(brands, term):
        return BRAND_WORD
    if term in name:
        return NAME_ANYWHERE
    if term in brands:
        return BRAND_ANYWHERE
    return 0


def score(product: Product, search_term: str) -> int:
    """Rank a shard hit against the search term.

    Only the first matching tier counts. The length and word-count bonuses
    are added on top of a matched tier only, so a product that does not
    mention the term at all scores 0.
    """
    name = (product.product_name or "").lower()
    brands = (product.brands or "").lower()
    term = (search_term or "").lower()

    total = _match_tier(name, brands, term)
    if total == 0:
        return 0
    if len(name) < SHORT_NAME_MAX_LENGTH:
        total += SHORT_NAME_BONUS
    if len(name.split(" ")) <= FEW_WORDS_MAX:
        total += FEW_WORDS_BONUS
    return total
