"""Value types shared by the generation pipeline."""
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from stockchef.core.config import get_settings
from stockchef.utils.ingredient_name import normalize_ingredient_name

# normalized ingredient name -> available quantity
StockView = Mapping[str, float]


@dataclass(frozen=True)
class IngredientLine:
    name: str
    quantity: float

    @property
    def key(self) -> str:
        return normalize_ingredient_name(self.name)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity}


@dataclass(frozen=True)
class RecipeCandidate:
    """Recipe proposal, from the model or the fallback generator."""

    name: str
    ingredients: tuple[IngredientLine, ...]
    quality: Optional[float] = None

    def required_quantities(self, exempt: Iterable[str] = ()) -> dict[str, float]:
        """Sum the lines per normalized name, skipping exempt ingredients."""
        exempt_keys = set(exempt)
        required: dict[str, float] = {}
        for line in self.ingredients:
            key = line.key
            if key in exempt_keys:
                continue
            required[key] = required.get(key, 0.0) + line.quantity
        return required

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ingredients": [line.to_dict() for line in self.ingredients],
            "quality": self.quality,
        }


@dataclass(frozen=True)
class RankedCandidate:
    candidate: RecipeCandidate
    score: float


@dataclass(frozen=True)
class StockEntry:
    """Snapshot of one stock row, detached from the ORM session."""

    name: str
    quantity: float
    ingredient_id: Optional[int] = None
    version: Optional[int] = None
    key: str = field(default="")

    def __post_init__(self) -> None:
        if not self.key:
            object.__setattr__(self, "key", normalize_ingredient_name(self.name))


def exempt_keys() -> frozenset[str]:
    """Ingredients that never count against stock (water by default)."""
    return frozenset(normalize_ingredient_name(name) for name in get_settings().exempt_ingredients)


def build_stock_view(entries: Iterable[StockEntry]) -> dict[str, float]:
    """Merge entries by normalized name; negative or NaN quantities count as zero."""
    view: dict[str, float] = {}
    for entry in entries:
        if not entry.key:
            continue
        quantity = entry.quantity if entry.quantity is not None and not math.isnan(entry.quantity) else 0.0
        view[entry.key] = view.get(entry.key, 0.0) + max(0.0, quantity)
    return view


def usable_stock(stock: StockView, exempt: Iterable[str] | None = None) -> dict[str, float]:
    """Non-exempt items holding a positive quantity."""
    exempt_set = set(exempt_keys() if exempt is None else exempt)
    return {name: qty for name, qty in stock.items() if qty > 0 and name not in exempt_set}
