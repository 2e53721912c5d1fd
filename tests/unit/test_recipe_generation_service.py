"""Generation pipeline: AI path, fallback, limits and persistence"""
import json
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from stockchef.core.errors import GenerationExhaustedError, NoStockError, RateLimitedError
from stockchef.services import consulta_service
from stockchef.services.generation_client import GenerationClient
from stockchef.services.rate_limiter import RateLimiter, RatePolicy
from stockchef.services.recipe_generation_service import (
    PROVENANCE_AI,
    PROVENANCE_FALLBACK,
    RecipeGenerationService,
    narrow_stock,
)
from stockchef.services.recipe_models import IngredientLine, RankedCandidate, RecipeCandidate, StockEntry

USER_ID = 7


def fake_llm(*responses):
    llm = MagicMock()
    llm.ainvoke = AsyncMock(
        side_effect=[r if isinstance(r, Exception) else SimpleNamespace(content=r) for r in responses]
    )
    return llm


def make_service(llm, limiter=None, **kwargs):
    client = GenerationClient(llm_factory=lambda temperature: llm, timeout=1.0)
    return RecipeGenerationService(
        client=client,
        limiter=limiter or RateLimiter(test_mode=True),
        policy=RatePolicy("recipe", 1, 3600),
        **kwargs,
    )


def recipes(*items):
    return json.dumps({"recipes": [
        {"name": name, "ingredients": [{"name": n, "quantity": q} for n, q in lines]} for name, lines in items
    ]})


async def test_only_stock_backed_ai_recipes_are_returned(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3, "water": 1000, "rice": 0})
    llm = fake_llm(recipes(
        ("Rice bowl", [("rice", 1)]),
        ("Tomato soup", [("tomato", 2), ("water", 500)]),
    ))

    result = await make_service(llm).generate(session, USER_ID)

    assert result.provenance == PROVENANCE_AI
    assert [r.candidate.name for r in result.ranked] == ["Tomato soup"]
    assert result.consulta.provenance == "ai"
    assert result.consulta.attempts == 1
    assert [r.name for r in result.consulta.recipes] == ["Tomato soup"]
    assert result.consulta.recipes[0].ingredients == [
        {"name": "tomato", "quantity": 2.0},
        {"name": "water", "quantity": 500.0},
    ]
    assert llm.ainvoke.await_count == 1


async def test_prompt_lists_only_usable_stock(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3, "water": 1000, "rice": 0})
    llm = fake_llm(recipes(("Tomato", [("tomato", 1)])))

    await make_service(llm).generate(session, USER_ID)

    user_prompt = llm.ainvoke.await_args.args[0][1].content
    assert "tomato" in user_prompt
    assert "- rice" not in user_prompt
    assert "- water" not in user_prompt


async def test_invalid_ai_output_falls_back(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3, "rice": 2})
    llm = fake_llm(recipes(("Saffron rice", [("saffron", 1), ("rice", 1)])))

    result = await make_service(llm).generate(session, USER_ID)

    assert result.provenance == PROVENANCE_FALLBACK
    assert result.consulta.provenance == "fallback"
    names = [r.candidate.name for r in result.ranked]
    assert "Tomato and rice skillet" in names
    assert result.ranked[0].candidate.name == "Tomato and rice skillet"


async def test_upstream_failures_fall_back_after_two_attempts(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3})
    llm = fake_llm(RuntimeError("connection reset"), "not json")

    result = await make_service(llm).generate(session, USER_ID)

    assert result.provenance == PROVENANCE_FALLBACK
    assert result.consulta.attempts == 2
    assert [r.candidate.name for r in result.ranked] == ["Tomato sauté"]
    assert llm.ainvoke.await_count == 2


async def test_partial_ai_survivors_are_not_topped_up(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3, "rice": 2})
    fallback = MagicMock(return_value=[])
    llm = fake_llm(recipes(("Caviar", [("caviar", 1)]), ("Tomato rice", [("tomato", 1), ("rice", 1)])))

    result = await make_service(llm, fallback=fallback).generate(session, USER_ID)

    assert result.provenance == PROVENANCE_AI
    assert [r.candidate.name for r in result.ranked] == ["Tomato rice"]
    fallback.assert_not_called()


async def test_exhausted_when_fallback_has_nothing(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3})
    llm = fake_llm("{}", "{}")

    with pytest.raises(GenerationExhaustedError):
        await make_service(llm, fallback=lambda stock: []).generate(session, USER_ID)

    assert await consulta_service.list_consultas(session, USER_ID) == []


async def test_no_usable_stock(session, seed_stock):
    await seed_stock(USER_ID, {"water": 1000, "rice": 0})
    llm = fake_llm()

    with pytest.raises(NoStockError):
        await make_service(llm).generate(session, USER_ID)
    assert llm.ainvoke.await_count == 0


async def test_rate_limited_request_does_no_work(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3})
    llm = fake_llm(recipes(("Tomato", [("tomato", 1)])))
    service = make_service(llm, limiter=RateLimiter(clock=lambda: 1_000.0))

    await service.generate(session, USER_ID)
    with pytest.raises(RateLimitedError) as exc_info:
        await service.generate(session, USER_ID)

    assert exc_info.value.retry_after == pytest.approx(3600)
    assert llm.ainvoke.await_count == 1
    assert len(await consulta_service.list_consultas(session, USER_ID)) == 1


async def test_explicit_ingredients_narrow_the_stock(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3, "rice": 2, "onion": 2})
    llm = fake_llm(recipes(
        ("Big tomato", [("tomato", 2)]),
        ("Rice", [("rice", 1)]),
        ("Tomato", [("tomato", 1)]),
    ))

    result = await make_service(llm).generate(session, USER_ID, [("Tomato", 1.0), ("saffron", None)])

    assert [r.candidate.name for r in result.ranked] == ["Tomato"]


async def test_unknown_explicit_ingredients_mean_no_stock(session, seed_stock):
    await seed_stock(USER_ID, {"tomato": 3})

    with pytest.raises(NoStockError):
        await make_service(fake_llm()).generate(session, USER_ID, [("saffron", None)])


def test_narrow_stock_caps_and_filters():
    entries = [StockEntry("tomato", 3.0), StockEntry("rice", 2.0), StockEntry("onion", 1.0)]

    narrowed = narrow_stock(entries, [("Tomato", 5.0), ("rice", 1.0), ("Rice", 0.5), ("beans", None)])

    assert [(e.key, e.quantity) for e in narrowed] == [("tomato", 3.0), ("rice", 1.5)]


def test_narrow_stock_uncapped_mention_wins():
    entries = [StockEntry("rice", 2.0)]
    assert [e.quantity for e in narrow_stock(entries, [("rice", 0.5), ("rice", None)])] == [2.0]


async def test_list_consultas_filters_by_time(session):
    ranked = [RankedCandidate(RecipeCandidate("Tomato", (IngredientLine("tomato", 1),)), 0.5)]
    base = datetime(2026, 1, 1, 12, 0, 0)
    for days in range(3):
        await consulta_service.create_consulta(
            session, USER_ID, "fallback", ranked, created_at=base + timedelta(days=days)
        )
    await consulta_service.create_consulta(session, USER_ID + 1, "ai", ranked, created_at=base)

    everything = await consulta_service.list_consultas(session, USER_ID)
    window = await consulta_service.list_consultas(
        session, USER_ID, start=base + timedelta(days=1), end=base + timedelta(days=2)
    )

    assert [c.created_at for c in everything] == [base + timedelta(days=d) for d in (2, 1, 0)]
    assert [c.created_at for c in window] == [base + timedelta(days=2), base + timedelta(days=1)]


async def test_create_consulta_needs_recipes(session):
    with pytest.raises(ValueError):
        await consulta_service.create_consulta(session, USER_ID, "ai", [])
