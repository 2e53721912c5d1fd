"""Stock cooking with optimistic concurrency.

Cooking reads a snapshot (quantity + version per ingredient), checks it
covers the recipe, then decrements every row with a conditional UPDATE that
only matches the version it read. If any row moved on in between, the whole
transaction is rolled back and ConflictError is raised; retrying is left to
the caller, who must re-read the stock first.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockchef.core.errors import ConflictError, InsufficientStockError, NotFoundError
from stockchef.db.models import Consulta, ConsultaRecipe, UserIngredient
from stockchef.services import stock_service
from stockchef.services.recipe_models import IngredientLine, RecipeCandidate, exempt_keys

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedDecrement:
    ingredient_id: int
    name: str
    version: int
    available: float
    amount: float


@dataclass(frozen=True)
class CookPlan:
    user_id: int
    items: tuple[PlannedDecrement, ...]


async def prepare_cook(session: AsyncSession, user_id: int, lines: Sequence[IngredientLine]) -> CookPlan:
    """
    Read step: snapshot the needed rows and check quantities.

    Raises:
        InsufficientStockError: an ingredient is missing or too low
    """
    for line in lines:
        if line.quantity <= 0:
            raise ValueError(f"quantity must be positive: {line.name}")
    required = RecipeCandidate(name="cook", ingredients=tuple(lines)).required_quantities(exempt_keys())
    rows = {row.normalized_name: row for row in await stock_service.load_stock(session, user_id, required.keys())}

    shortages = []
    items = []
    for name, amount in sorted(required.items()):
        row = rows.get(name)
        available = float(row.quantity) if row is not None else 0.0
        if row is None or amount > available:
            shortages.append({"ingredient": name, "required": amount, "available": available})
            continue
        items.append(PlannedDecrement(row.ingredient_id, name, row.version, available, amount))

    if shortages:
        raise InsufficientStockError(shortages)
    return CookPlan(user_id=user_id, items=tuple(items))


async def commit_cook(session: AsyncSession, plan: CookPlan) -> list[UserIngredient]:
    """
    Write step: apply every decrement or none.

    Returns:
        the user's full stock after the commit

    Raises:
        ConflictError: a row's version changed since prepare_cook
    """
    try:
        for item in plan.items:
            matched = await stock_service.conditional_update(
                session, item.ingredient_id, item.version, delta=-item.amount
            )
            if not matched:
                logger.info(
                    "Cook conflict: user_id=%s ingredient_id=%s read_version=%s",
                    plan.user_id, item.ingredient_id, item.version,
                )
                raise ConflictError([item.ingredient_id])
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Cooked for user_id=%s: %s", plan.user_id, {i.name: i.amount for i in plan.items})
    return await stock_service.load_stock(session, plan.user_id)


async def load_recipe_lines(session: AsyncSession, user_id: int, recipe_id: int) -> list[IngredientLine]:
    """Ingredient lines of a persisted recipe owned by ``user_id``."""
    result = await session.execute(
        select(ConsultaRecipe)
        .join(Consulta, Consulta.consulta_id == ConsultaRecipe.consulta_id)
        .where(ConsultaRecipe.recipe_id == recipe_id, Consulta.user_id == user_id)
    )
    recipe = result.scalar_one_or_none()
    if recipe is None:
        raise NotFoundError("Recipe", recipe_id)
    return [IngredientLine(name=item["name"], quantity=float(item["quantity"])) for item in recipe.ingredients]


async def cook(
    session: AsyncSession,
    user_id: int,
    recipe_id: Optional[int] = None,
    lines: Optional[Sequence[IngredientLine]] = None,
) -> list[UserIngredient]:
    """Cook a stored recipe or an ad-hoc ingredient list (read, check, conditional write)."""
    if (recipe_id is None) == (lines is None):
        raise ValueError("pass exactly one of recipe_id or lines")
    if recipe_id is not None:
        lines = await load_recipe_lines(session, user_id, recipe_id)

    plan = await prepare_cook(session, user_id, lines)
    return await commit_cook(session, plan)
