"""Stock validation for recipe candidates."""
import logging
import math
from collections.abc import Iterable, Sequence

from stockchef.services.recipe_models import RecipeCandidate, StockView, exempt_keys

logger = logging.getLogger(__name__)


def violations(candidate: RecipeCandidate, stock: StockView, exempt: Iterable[str]) -> list[str]:
    """
    List the reasons a candidate cannot be cooked from ``stock``.

    Exempt ingredients are skipped. Lines naming the same ingredient are
    summed before comparing with the available quantity.
    """
    exempt_set = set(exempt)
    problems = []
    for line in candidate.ingredients:
        if line.key in exempt_set:
            continue
        if not line.key:
            problems.append(f"unnamed ingredient {line.name!r}")
        elif not math.isfinite(line.quantity) or line.quantity <= 0:
            problems.append(f"{line.key}: invalid quantity {line.quantity}")

    for name, required in candidate.required_quantities(exempt_set).items():
        if name not in stock:
            problems.append(f"{name}: not in stock")
        elif required > stock[name]:
            problems.append(f"{name}: needs {required:g}, has {stock[name]:g}")
    return problems


def validate_candidates(
    candidates: Sequence[RecipeCandidate],
    stock: StockView,
    exempt: Iterable[str] | None = None,
) -> list[RecipeCandidate]:
    """Keep the candidates fully covered by stock, in their input order."""
    exempt_set = frozenset(exempt_keys() if exempt is None else exempt)
    survivors = []
    for candidate in candidates:
        problems = violations(candidate, stock, exempt_set)
        if problems:
            logger.debug("Dropped recipe %r: %s", candidate.name, "; ".join(problems))
            continue
        survivors.append(candidate)
    return survivors
