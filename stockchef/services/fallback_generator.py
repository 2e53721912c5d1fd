"""Deterministic recipes built from stock alone, used when the AI path yields nothing."""
import logging
from itertools import combinations
from typing import Optional

from stockchef.core.config import get_settings
from stockchef.services.recipe_models import IngredientLine, RecipeCandidate, StockView, exempt_keys
from stockchef.utils.ingredient_name import display_name

logger = logging.getLogger(__name__)

_STYLE_BY_SIZE = {1: "sauté", 2: "skillet", 3: "bowl"}


class FallbackGenerator:
    """
    Enumerate simple combinations of the best-stocked ingredients.

    Pool: non-exempt items with quantity above ``min_quantity``, ordered by
    quantity (desc) then name, truncated to ``pool_size``. Candidates are
    triples, then pairs, then singles, in ``itertools.combinations`` order,
    up to ``max_candidates``. Each line uses ``min(portion, available)``.
    """

    def __init__(
        self,
        min_quantity: float = 0.0,
        portion: float = 1.0,
        pool_size: int = 5,
        max_candidates: int = 5,
        exempt: Optional[frozenset[str]] = None,
    ) -> None:
        self.min_quantity = min_quantity
        self.portion = portion
        self.pool_size = pool_size
        self.max_candidates = max_candidates
        self.exempt = exempt_keys() if exempt is None else exempt

    def generate(self, stock: StockView) -> list[RecipeCandidate]:
        pool = sorted(
            ((name, qty) for name, qty in stock.items() if name not in self.exempt and qty > self.min_quantity),
            key=lambda item: (-item[1], item[0]),
        )[: self.pool_size]

        candidates: list[RecipeCandidate] = []
        for size in (3, 2, 1):
            for combo in combinations(pool, size):
                if len(candidates) >= self.max_candidates:
                    return candidates
                candidates.append(self._candidate(combo))

        if not candidates:
            logger.warning("Fallback found no usable stock")
        return candidates

    def _candidate(self, combo: tuple[tuple[str, float], ...]) -> RecipeCandidate:
        lines = tuple(IngredientLine(name=name, quantity=min(self.portion, qty)) for name, qty in combo)
        return RecipeCandidate(name=_title(name for name, _ in combo), ingredients=lines)


def _title(names) -> str:
    names = list(names)
    if len(names) == 1:
        joined = names[0]
    else:
        joined = ", ".join(names[:-1]) + " and " + names[-1]
    return f"{display_name(joined)} {_STYLE_BY_SIZE[len(names)]}"


def generate_fallback(stock: StockView) -> list[RecipeCandidate]:
    """Fallback candidates with the configured pool and portion settings."""
    settings = get_settings()
    return FallbackGenerator(
        min_quantity=settings.fallback_min_quantity,
        portion=settings.fallback_portion,
        pool_size=settings.fallback_pool_size,
        max_candidates=settings.fallback_max_candidates,
    ).generate(stock)
