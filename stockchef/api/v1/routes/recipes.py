"""Recipe generation and cooking routes"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockchef.api.dependencies import require_authentication
from stockchef.api.v1.schemas.common import ApiResponse
from stockchef.api.v1.schemas.ingredient import IngredientResponse
from stockchef.api.v1.schemas.recipe import ConsultaData, CookRequest, GenerateRecipesRequest
from stockchef.db.session import get_session
from stockchef.services import consulta_service, stock_cooking_service
from stockchef.services.recipe_generation_service import (
    RecipeGenerationService,
    get_recipe_generation_service,
)
from stockchef.services.recipe_models import IngredientLine

router = APIRouter()


@router.post("/generate", response_model=ApiResponse[ConsultaData])
async def generate_recipes(
    request: GenerateRecipesRequest,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(require_authentication),
    service: RecipeGenerationService = Depends(get_recipe_generation_service),
) -> ApiResponse[ConsultaData]:
    """
    Generate recipes from the user's stock

    Limited to one call per rolling hour per user. Every returned recipe
    only uses ingredients in stock (water excepted), within the stocked
    quantities. ``provenance`` tells whether the AI or the deterministic
    fallback produced them.

    **Errors:** RATE_LIMITED (429), NO_STOCK (422), GENERATION_EXHAUSTED (500)
    """
    requested = None
    if request.ingredients is not None:
        requested = [(item.name, item.quantity) for item in request.ingredients]

    result = await service.generate(session, user_id, requested)
    return ApiResponse(
        success=True,
        data=ConsultaData.from_row(result.consulta),
        message=f"{len(result.ranked)} recipe(s) generated ({result.provenance}).",
    )


@router.get("/consultas/{consulta_id}", response_model=ApiResponse[ConsultaData])
async def get_consulta(
    consulta_id: int,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(require_authentication),
) -> ApiResponse[ConsultaData]:
    consulta = await consulta_service.get_consulta(session, user_id, consulta_id)
    return ApiResponse(success=True, data=ConsultaData.from_row(consulta))


@router.get("/consultas", response_model=ApiResponse[List[ConsultaData]])
async def list_consultas(
    start: Optional[datetime] = Query(None, description="Inclusive lower bound"),
    end: Optional[datetime] = Query(None, description="Inclusive upper bound"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(require_authentication),
) -> ApiResponse[List[ConsultaData]]:
    """Past generation results, newest first."""
    consultas = await consulta_service.list_consultas(session, user_id, start, end, limit, offset)
    return ApiResponse(success=True, data=[ConsultaData.from_row(c) for c in consultas])


@router.post("/cook", response_model=ApiResponse[List[IngredientResponse]])
async def cook_recipe(
    request: CookRequest,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(require_authentication),
) -> ApiResponse[List[IngredientResponse]]:
    """
    Consume a recipe's ingredients from stock

    The write only commits if no other request changed the same stock rows
    since they were read.

    **Errors:** INSUFFICIENT_STOCK (422, final), CONFLICT (409, reload and
    retry), NOT_FOUND (404)
    """
    lines = None
    if request.ingredients is not None:
        lines = [IngredientLine(name=item.name, quantity=item.quantity) for item in request.ingredients]

    try:
        rows = await stock_cooking_service.cook(session, user_id, recipe_id=request.recipe_id, lines=lines)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ApiResponse(
        success=True,
        data=[IngredientResponse.from_row(row) for row in rows],
        message="Stock updated.",
    )
