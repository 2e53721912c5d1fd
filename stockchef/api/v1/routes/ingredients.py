"""Stock (ingredient) routes"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from stockchef.api.dependencies import require_authentication
from stockchef.api.v1.schemas.common import ApiResponse
from stockchef.api.v1.schemas.ingredient import (
    IngredientResponse,
    SaveIngredientsData,
    SaveIngredientsRequest,
    UpdateIngredientRequest,
)
from stockchef.db.session import get_session
from stockchef.services import stock_service

router = APIRouter()


@router.post("/save", response_model=ApiResponse[SaveIngredientsData])
async def save_ingredients(
    request: SaveIngredientsRequest,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(require_authentication),
) -> ApiResponse[SaveIngredientsData]:
    """
    Add ingredients to the stock

    Names are normalized; an existing ingredient gets the quantity added
    to it (and its version bumped).
    """
    try:
        rows = await stock_service.save_ingredients(
            session,
            user_id,
            [(item.name, item.quantity) for item in request.ingredients],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    saved = [IngredientResponse.from_row(row) for row in rows]
    return ApiResponse(
        success=True,
        data=SaveIngredientsData(saved_count=len(saved), ingredients=saved),
        message=f"{len(saved)} ingredient(s) saved.",
    )


@router.get("/list", response_model=ApiResponse[List[IngredientResponse]])
async def get_ingredients(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(require_authentication),
) -> ApiResponse[List[IngredientResponse]]:
    """Current stock, including items at zero."""
    rows = await stock_service.load_stock(session, user_id)
    return ApiResponse(
        success=True,
        data=[IngredientResponse.from_row(row) for row in rows],
        message=f"{len(rows)} ingredient(s) in stock.",
    )


@router.patch("/{ingredient_id}", response_model=ApiResponse[IngredientResponse])
async def update_ingredient(
    ingredient_id: int,
    request: UpdateIngredientRequest,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(require_authentication),
) -> ApiResponse[IngredientResponse]:
    """
    Set an ingredient's quantity

    Send ``expected_version`` to fail with CONFLICT when the row changed
    since it was read.
    """
    try:
        row = await stock_service.set_ingredient_quantity(
            session,
            user_id,
            ingredient_id,
            request.quantity,
            expected_version=request.expected_version,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ApiResponse(success=True, data=IngredientResponse.from_row(row), message="Ingredient updated.")
