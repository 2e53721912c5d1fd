"""Deterministic recipe ranking.

score = 0.5 * coverage + 0.3 * depletion + 0.2 * quality

- coverage: distinct non-exempt ingredients used / usable stock items
- depletion: mean of min(1, requested / available) over those ingredients
- quality: the candidate's own quality signal, 0 when absent

Scores are rounded to 6 decimals and sorted with a stable sort, so equal
scores keep their input order.
"""
from collections.abc import Iterable, Sequence

from stockchef.services.recipe_models import RankedCandidate, RecipeCandidate, StockView, exempt_keys, usable_stock

COVERAGE_WEIGHT = 0.5
DEPLETION_WEIGHT = 0.3
QUALITY_WEIGHT = 0.2


def score_candidate(candidate: RecipeCandidate, stock: StockView, exempt: Iterable[str]) -> float:
    exempt_set = set(exempt)
    usable = usable_stock(stock, exempt_set)
    required = candidate.required_quantities(exempt_set)

    coverage = len(required) / len(usable) if usable else 0.0
    fractions = [min(1.0, amount / usable[name]) for name, amount in required.items() if usable.get(name)]
    depletion = sum(fractions) / len(fractions) if fractions else 0.0
    quality = candidate.quality or 0.0

    score = COVERAGE_WEIGHT * min(1.0, coverage) + DEPLETION_WEIGHT * depletion + QUALITY_WEIGHT * quality
    return round(score, 6)


def rank_candidates(
    survivors: Sequence[RecipeCandidate],
    stock: StockView,
    exempt: Iterable[str] | None = None,
) -> list[RankedCandidate]:
    exempt_set = frozenset(exempt_keys() if exempt is None else exempt)
    scored = [RankedCandidate(candidate, score_candidate(candidate, stock, exempt_set)) for candidate in survivors]
    # sorted() is stable: ties keep input order
    return sorted(scored, key=lambda ranked: -ranked.score)
