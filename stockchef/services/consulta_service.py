"""Generation result storage - Consulta / ConsultaRecipe tables"""
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockchef.core.errors import NotFoundError
from stockchef.db.models import Consulta, ConsultaRecipe
from stockchef.services.recipe_models import RankedCandidate


async def create_consulta(
    session: AsyncSession,
    user_id: int,
    provenance: str,
    ranked: Sequence[RankedCandidate],
    attempts: int = 0,
    created_at: Optional[datetime] = None,
) -> Consulta:
    """
    Persist a generation result with its ranked recipes and commit.

    Args:
        session: DB session
        user_id: owner
        provenance: "ai" or "fallback"
        ranked: recipes in rank order (must not be empty)
        attempts: AI attempts made
        created_at: defaults to now (UTC)
    """
    if not ranked:
        raise ValueError("a generation result needs at least one recipe")

    consulta = Consulta(
        user_id=user_id,
        provenance=provenance,
        attempts=attempts,
        created_at=created_at or datetime.utcnow(),
    )
    session.add(consulta)
    try:
        await session.flush()
        for position, item in enumerate(ranked):
            session.add(
                ConsultaRecipe(
                    consulta_id=consulta.consulta_id,
                    position=position,
                    name=item.candidate.name,
                    ingredients=[line.to_dict() for line in item.candidate.ingredients],
                    score=item.score,
                )
            )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    return await get_consulta(session, user_id, consulta.consulta_id)


async def get_consulta(session: AsyncSession, user_id: int, consulta_id: int) -> Consulta:
    """Load one result with its recipes; NotFoundError if missing or not owned."""
    result = await session.execute(
        select(Consulta)
        .where(Consulta.consulta_id == consulta_id, Consulta.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    consulta = result.scalar_one_or_none()
    if consulta is None:
        raise NotFoundError("Consulta", consulta_id)
    return consulta


async def list_consultas(
    session: AsyncSession,
    user_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Consulta]:
    """
    User's generation results in a time range, newest first.

    Args:
        start: inclusive lower bound on created_at
        end: inclusive upper bound on created_at
    """
    query = select(Consulta).where(Consulta.user_id == user_id)
    if start:
        query = query.where(Consulta.created_at >= start)
    if end:
        query = query.where(Consulta.created_at <= end)
    query = query.order_by(Consulta.created_at.desc(), Consulta.consulta_id.desc()).limit(limit).offset(offset)

    result = await session.execute(query)
    return list(result.scalars().all())
