from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sensitrack.ingredients import split_ingredients
from sensitrack.schemas import (
    AnnotatedIngredient,
    IngredientGroup,
    IngredientReaction,
    Product,
    ProductReaction,
    Reaction,
)


def _stamp(reaction: IngredientReaction) -> Optional[datetime]:
    return reaction.updated_at or reaction.created_at


def latest_reaction(candidates: Iterable[IngredientReaction]) -> Optional[IngredientReaction]:
    best: Optional[IngredientReaction] = None
    for candidate in candidates:
        if best is None:
            best = candidate
            continue
        stamp, best_stamp = _stamp(candidate), _stamp(best)
        # Strictly newer only: on equal stamps the earlier entry stays.
        if stamp is not None and (best_stamp is None or stamp > best_stamp):
            best = candidate
    return best


def annotate(product: Product, reactions: Iterable[IngredientReaction]) -> list[AnnotatedIngredient]:
    """Pair each ingredient on the label with the user's reaction to it, if any."""
    by_name: dict[str, list[IngredientReaction]] = {}
    for reaction in reactions:
        by_name.setdefault(reaction.key, []).append(reaction)

    annotated: list[AnnotatedIngredient] = []
    for name, display_name in split_ingredients(product.ingredients_text):
        match = latest_reaction(by_name.get(name, []))
        annotated.append(
            AnnotatedIngredient(
                name=name,
                display_name=display_name,
                reaction=match.reaction if match else None,
            )
        )
    return annotated


def group_by_letter(reactions: Iterable[IngredientReaction]) -> list[IngredientGroup]:
    named = [reaction for reaction in reactions if reaction.ingredient_name.strip()]
    named.sort(key=lambda reaction: reaction.ingredient_name.strip().lower())

    groups: list[IngredientGroup] = []
    for reaction in named:
        letter = reaction.ingredient_name.strip()[0].upper()
        if not groups or groups[-1].letter != letter:
            groups.append(IngredientGroup(letter=letter))
        groups[-1].items.append(reaction)
    return groups


def group_products_by_reaction(reactions: Iterable[ProductReaction]) -> dict[Reaction, list[str]]:
    grouped: dict[Reaction, list[str]] = {reaction: [] for reaction in Reaction}
    for row in reactions:
        grouped[Reaction(row.reaction)].append(row.product_code)
    return grouped
