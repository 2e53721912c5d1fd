"""Recipe prompt construction (stock-bounded)."""
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from stockchef.core.config import get_settings
from stockchef.services.recipe_models import StockEntry, exempt_keys

SYSTEM_PROMPT = "You are a home cook planning meals from a fixed pantry. Reply with JSON only."


@dataclass(frozen=True)
class PromptIngredient:
    name: str  # normalized
    max_quantity: float


@dataclass(frozen=True)
class PromptSpec:
    """Bounded generation request derived from one stock snapshot."""

    ingredients: tuple[PromptIngredient, ...]
    exempt: tuple[str, ...]
    system_prompt: str
    user_prompt: str

    @property
    def vocabulary(self) -> frozenset[str]:
        return frozenset(item.name for item in self.ingredients) | frozenset(self.exempt)

    @property
    def is_empty(self) -> bool:
        return not self.ingredients


class StockOnlyPromptBuilder:
    """Ask only for recipes made from what the user already has."""

    def __init__(self, max_quantity: Optional[float] = None, exempt: Iterable[str] | None = None) -> None:
        self.max_quantity = max_quantity
        self.exempt = tuple(sorted(exempt_keys() if exempt is None else exempt))

    def build(self, stock_items: Iterable[StockEntry]) -> PromptSpec:
        merged: dict[str, float] = {}
        for item in stock_items:
            if not item.key or item.key in self.exempt:
                continue
            quantity = item.quantity
            if quantity is None or math.isnan(quantity) or quantity <= 0:
                continue
            merged[item.key] = merged.get(item.key, 0.0) + quantity

        ingredients = tuple(
            PromptIngredient(name=name, max_quantity=self._cap(quantity))
            for name, quantity in sorted(merged.items())
        )
        return PromptSpec(
            ingredients=ingredients,
            exempt=self.exempt,
            system_prompt=SYSTEM_PROMPT,
            user_prompt=self._render(ingredients),
        )

    def _cap(self, quantity: float) -> float:
        if self.max_quantity is not None:
            quantity = min(quantity, self.max_quantity)
        return quantity

    def _render(self, ingredients: tuple[PromptIngredient, ...]) -> str:
        pantry = "\n".join(f"- {item.name}: up to {_format_quantity(item.max_quantity)}" for item in ingredients)
        exempt_text = ", ".join(self.exempt) if self.exempt else "none"

        return f"""Pantry (ingredient: maximum quantity you may use):
{pantry}

Freely available (no limit): {exempt_text}

**Rules:**
1. Use ONLY the ingredient names listed above, spelled exactly as written.
2. Never use more of an ingredient than its maximum quantity.
3. Propose 3 to 5 different recipes.
4. Give each recipe a "score" between 0 and 1 for how good the dish is.

**JSON response (no code block):**
{{"recipes":[{{"name":"Recipe name","score":0.8,"ingredients":[{{"name":"ingredient","quantity":1}}]}}]}}"""


def _format_quantity(quantity: float) -> str:
    if math.isinf(quantity):
        return "any amount"
    return f"{quantity:g}"


def build_prompt(stock_items: Iterable[StockEntry]) -> PromptSpec:
    """Build a PromptSpec with the configured caps and exempt ingredients."""
    settings = get_settings()
    return StockOnlyPromptBuilder(max_quantity=settings.prompt_max_quantity).build(stock_items)
