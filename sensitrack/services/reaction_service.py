from __future__ import annotations

import logging

from sensitrack.errors import ProductNotFound, StoreWriteFailed, TrackerError
from sensitrack.ingredients import parse_ingredients
from sensitrack.schemas import Product, Reaction
from sensitrack.storage.stores import IngredientReactionStore, ProductCatalog, ProductReactionStore

logger = logging.getLogger(__name__)


class ReactionFanout:
    def __init__(
        self,
        products: ProductReactionStore,
        ingredients: IngredientReactionStore,
        catalog: ProductCatalog,
    ) -> None:
        self.products = products
        self.ingredients = ingredients
        self.catalog = catalog

    async def resolve_product(self, product_code: str) -> Product:
        try:
            product = await self.catalog.get_by_code(product_code)
        except TrackerError as exc:
            raise ProductNotFound(f"lookup for {product_code} failed: {exc}") from exc
        if product is None:
            raise ProductNotFound(f"product {product_code} is not in the catalog")
        return product

    async def record(self, user_id: str, product: Product, reaction: Reaction) -> list[str]:
        """Store `reaction` for the product and each of its ingredients.

        The product write must succeed (StoreWriteFailed otherwise). Ingredient
        writes are independent of each other; failures are logged and skipped.
        Returns the ingredient names that were written.
        """
        reaction = Reaction(reaction)
        try:
            await self.products.upsert(user_id, product.code, reaction)
        except Exception as exc:
            raise StoreWriteFailed(f"product reaction for {product.code}: {exc}") from exc

        written: list[str] = []
        names = parse_ingredients(product.ingredients_text)
        for name in names:
            try:
                await self.ingredients.upsert(user_id, name, reaction)
            except Exception as exc:
                logger.warning("ingredient reaction '%s' for user %s not saved: %s", name, user_id, exc)
                continue
            written.append(name)
        logger.debug(
            "reaction %s saved for product=%s ingredients=%s/%s",
            reaction.value,
            product.code,
            len(written),
            len(names),
        )
        return written

    async def clear(self, user_id: str, product_code: str) -> list[str]:
        try:
            await self.products.delete(user_id, product_code)
        except Exception as exc:
            raise StoreWriteFailed(f"deleting product reaction for {product_code}: {exc}") from exc

        try:
            product = await self.resolve_product(product_code)
        except ProductNotFound:
            logger.warning(
                "product %s unresolved; its ingredient reactions for user %s were left in place",
                product_code,
                user_id,
            )
            return []

        removed: list[str] = []
        for name in parse_ingredients(product.ingredients_text):
            try:
                await self.ingredients.delete(user_id, name)
            except Exception as exc:
                logger.warning("ingredient reaction '%s' for user %s not deleted: %s", name, user_id, exc)
                continue
            removed.append(name)
        return removed
