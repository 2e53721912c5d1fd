"""Stock repository - UserIngredient rows with versioned conditional writes."""
import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stockchef.core.errors import ConflictError, NotFoundError
from stockchef.db.models import UserIngredient
from stockchef.services.recipe_models import StockEntry
from stockchef.utils.ingredient_name import normalize_ingredient_name

logger = logging.getLogger(__name__)


async def load_stock(
    session: AsyncSession,
    user_id: int,
    names: Optional[Iterable[str]] = None,
) -> list[UserIngredient]:
    """
    Read the user's stock rows, optionally limited to some normalized names.

    Rows already in the identity map are refreshed so versions are current.
    """
    stmt = select(UserIngredient).where(UserIngredient.user_id == user_id)
    if names is not None:
        wanted = list(names)
        if not wanted:
            return []
        stmt = stmt.where(UserIngredient.normalized_name.in_(wanted))
    stmt = stmt.order_by(UserIngredient.normalized_name).execution_options(populate_existing=True)

    result = await session.execute(stmt)
    return list(result.scalars().all())


def to_entries(rows: Iterable[UserIngredient]) -> list[StockEntry]:
    """Detach rows into immutable snapshots."""
    return [
        StockEntry(
            name=row.ingredient_name,
            quantity=float(row.quantity),
            ingredient_id=row.ingredient_id,
            version=row.version,
            key=row.normalized_name,
        )
        for row in rows
    ]


async def get_ingredient(session: AsyncSession, user_id: int, ingredient_id: int) -> UserIngredient:
    result = await session.execute(
        select(UserIngredient)
        .where(UserIngredient.ingredient_id == ingredient_id, UserIngredient.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFoundError("Ingredient", ingredient_id)
    return row


async def conditional_update(
    session: AsyncSession,
    ingredient_id: int,
    expected_version: int,
    *,
    delta: Optional[float] = None,
    quantity: Optional[float] = None,
) -> bool:
    """
    Compare-and-swap on one stock row.

    Applies ``delta`` (added to the current quantity) or sets ``quantity``,
    and bumps the version, only if the row still has ``expected_version``
    and the result stays non-negative. Returns False when nothing matched.
    Does not commit.
    """
    if (delta is None) == (quantity is None):
        raise ValueError("pass exactly one of delta or quantity")

    conditions = [
        UserIngredient.ingredient_id == ingredient_id,
        UserIngredient.version == expected_version,
    ]
    if delta is not None:
        new_quantity = UserIngredient.quantity + delta
        if delta < 0:
            conditions.append(UserIngredient.quantity >= -delta)
    else:
        if quantity < 0:
            raise ValueError("quantity must be non-negative")
        new_quantity = quantity

    result = await session.execute(
        update(UserIngredient)
        .where(*conditions)
        .values(quantity=new_quantity, version=UserIngredient.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def save_ingredients(
    session: AsyncSession,
    user_id: int,
    items: Sequence[tuple[str, float]],
) -> list[UserIngredient]:
    """
    Add quantities to the stock, creating rows for new names.

    Same-name items (after normalization) accumulate. Commits on success;
    raises ConflictError if a row changed while being topped up.
    """
    totals: dict[str, tuple[str, float]] = {}
    for name, quantity in items:
        key = normalize_ingredient_name(name)
        if not key:
            raise ValueError(f"invalid ingredient name: {name!r}")
        display, total = totals.get(key, (name.strip(), 0.0))
        totals[key] = (display, total + quantity)

    try:
        existing = {row.normalized_name: row for row in await load_stock(session, user_id, totals.keys())}
        for key, (display, quantity) in totals.items():
            row = existing.get(key)
            if row is None:
                session.add(
                    UserIngredient(
                        user_id=user_id,
                        ingredient_name=display,
                        normalized_name=key,
                        quantity=quantity,
                        version=1,
                    )
                )
                logger.info("Stock add: user_id=%s %s=%s", user_id, key, quantity)
            elif not await conditional_update(session, row.ingredient_id, row.version, delta=quantity):
                raise ConflictError([row.ingredient_id])
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    return await load_stock(session, user_id, totals.keys())


async def set_ingredient_quantity(
    session: AsyncSession,
    user_id: int,
    ingredient_id: int,
    quantity: float,
    expected_version: Optional[int] = None,
) -> UserIngredient:
    """Overwrite one row's quantity; with ``expected_version`` the write is conditional."""
    row = await get_ingredient(session, user_id, ingredient_id)
    version = row.version if expected_version is None else expected_version
    try:
        if not await conditional_update(session, ingredient_id, version, quantity=quantity):
            raise ConflictError([ingredient_id])
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return await get_ingredient(session, user_id, ingredient_id)
