from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Reaction(str, Enum):
    CRITIC = "Critic"
    SENSITIVE = "Sensitive"
    SAFE = "Safe"


ShardId = Literal[1, 2]


class Product(BaseModel):
    code: str
    product_name: str
    brands: str = ""
    ingredients_text: str = ""
    image_url: str = ""

    @field_validator("brands", "ingredients_text", "image_url", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class ScoredProduct(Product):
    relevance_score: int = 0


class ShardDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str
    sub_collection: str
    shard_id: ShardId


class EliminationTest(BaseModel):
    id: str
    user_id: str
    product_code: str
    start_date: datetime
    finish_date: datetime
    completed: bool = False
    result: Optional[Reaction] = None

    def is_expired(self, now: datetime) -> bool:
        return not self.completed and now >= self.finish_date

    def days_remaining(self, now: datetime) -> int:
        if self.completed:
            return 0
        remaining = self.finish_date - now
        if remaining.total_seconds() <= 0:
            return 0
        # Partial days count as a full day left.
        return remaining.days + (1 if remaining.seconds or remaining.microseconds else 0)

    def covers(self, moment: datetime) -> bool:
        return self.start_date <= moment <= self.finish_date


class ProductReaction(BaseModel):
    user_id: str
    product_code: str
    reaction: Reaction
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IngredientReaction(BaseModel):
    user_id: str
    ingredient_name: str
    reaction: Reaction
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.ingredient_name.strip().lower()


class WishlistItem(BaseModel):
    id: str
    user_id: str
    product_code: str
    added_at: Optional[datetime] = None


class AnnotatedIngredient(BaseModel):
    name: str
    display_name: str
    reaction: Optional[Reaction] = None


class IngredientGroup(BaseModel):
    letter: str
    items: list[IngredientReaction] = Field(default_factory=list)


class ProductNote(BaseModel):
    id: str
    user_id: str
    product_code: str
    note: str
    rating: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
