"""Recipe generation pipeline.

rate limit -> stock snapshot -> prompt -> AI attempts -> validate -> rank
                                                 \\-> (no survivors) fallback -> validate -> rank
-> persist Consulta
"""
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stockchef.core.errors import GenerationExhaustedError, NoStockError, RateLimitedError
from stockchef.db.models import Consulta
from stockchef.services import consulta_service, stock_service
from stockchef.services.fallback_generator import generate_fallback
from stockchef.services.generation_client import GenerationClient, get_generation_client
from stockchef.services.prompt_builder import PromptSpec, build_prompt
from stockchef.services.rate_limiter import (
    RECIPE_GENERATE_SCOPE,
    RateLimiter,
    RatePolicy,
    get_rate_limiter,
    recipe_policy,
)
from stockchef.services.recipe_models import (
    RankedCandidate,
    RecipeCandidate,
    StockEntry,
    StockView,
    build_stock_view,
    exempt_keys,
    usable_stock,
)
from stockchef.services.recipe_ranker import rank_candidates
from stockchef.services.recipe_validator import validate_candidates
from stockchef.utils.ingredient_name import normalize_ingredient_name

logger = logging.getLogger(__name__)

PROVENANCE_AI = "ai"
PROVENANCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class GenerationResult:
    consulta: Consulta
    provenance: str
    ranked: tuple[RankedCandidate, ...]


def narrow_stock(
    entries: Sequence[StockEntry],
    requested: Sequence[tuple[str, Optional[float]]],
) -> list[StockEntry]:
    """
    Restrict a snapshot to explicitly requested ingredients.

    Requested names missing from stock are ignored; a requested quantity
    lowers the usable amount but never raises it above what is stored.
    """
    wanted: dict[str, Optional[float]] = {}
    for name, quantity in requested:
        key = normalize_ingredient_name(name)
        if not key:
            continue
        if key not in wanted:
            wanted[key] = quantity
        elif wanted[key] is not None and quantity is not None:
            wanted[key] += quantity
        else:
            wanted[key] = None  # any uncapped mention means "all of it"

    narrowed = []
    for entry in entries:
        if entry.key not in wanted:
            continue
        limit = wanted[entry.key]
        quantity = entry.quantity if limit is None else min(entry.quantity, limit)
        narrowed.append(StockEntry(entry.name, quantity, entry.ingredient_id, entry.version, entry.key))
    return narrowed


class RecipeGenerationService:
    def __init__(
        self,
        client: GenerationClient,
        limiter: RateLimiter,
        policy: Optional[RatePolicy] = None,
        fallback: Callable[[StockView], list[RecipeCandidate]] = generate_fallback,
        prompt_builder: Callable[[Sequence[StockEntry]], PromptSpec] = build_prompt,
    ) -> None:
        self.client = client
        self.limiter = limiter
        self.policy = policy or recipe_policy()
        self.fallback = fallback
        self.prompt_builder = prompt_builder

    async def generate(
        self,
        session: AsyncSession,
        user_id: int,
        ingredients: Optional[Sequence[tuple[str, Optional[float]]]] = None,
    ) -> GenerationResult:
        """
        Generate, validate, rank and persist recipes for ``user_id``.

        Args:
            session: DB session
            user_id: authenticated user
            ingredients: optional (name, quantity|None) list narrowing the stock

        Raises:
            RateLimitedError: generation quota used up
            NoStockError: nothing usable in (the narrowed) stock
            GenerationExhaustedError: even the fallback produced nothing
        """
        admission = await self.limiter.admit_policy(self.policy, RECIPE_GENERATE_SCOPE, user_id)
        if not admission.allowed:
            raise RateLimitedError(RECIPE_GENERATE_SCOPE, admission.retry_after)

        entries = stock_service.to_entries(await stock_service.load_stock(session, user_id))
        # end the read transaction; nothing is held open across the model call
        await session.commit()
        if ingredients is not None:
            entries = narrow_stock(entries, ingredients)

        exempt = exempt_keys()
        stock = build_stock_view(entries)
        if not usable_stock(stock, exempt):
            raise NoStockError(user_id)

        outcome = await self.client.generate(self.prompt_builder(entries))
        survivors = validate_candidates(outcome.candidates, stock, exempt)
        provenance = PROVENANCE_AI

        # partially valid AI output is returned as-is; fallback only when nothing survives
        if not survivors:
            logger.info(
                "Fallback for user_id=%s (state=%s, ai_candidates=%d)",
                user_id, outcome.state.value, len(outcome.candidates),
            )
            survivors = validate_candidates(self.fallback(stock), stock, exempt)
            provenance = PROVENANCE_FALLBACK
            if not survivors:
                raise GenerationExhaustedError(user_id, len(outcome.attempts))

        ranked = rank_candidates(survivors, stock, exempt)
        consulta = await consulta_service.create_consulta(
            session,
            user_id=user_id,
            provenance=provenance,
            ranked=ranked,
            attempts=len(outcome.attempts),
        )
        logger.info("Consulta %s saved: provenance=%s recipes=%d", consulta.consulta_id, provenance, len(ranked))
        return GenerationResult(consulta=consulta, provenance=provenance, ranked=tuple(ranked))


def get_recipe_generation_service() -> RecipeGenerationService:
    """RecipeGenerationService wired to the shared limiter and the OpenAI client."""
    return RecipeGenerationService(client=get_generation_client(), limiter=get_rate_limiter())
