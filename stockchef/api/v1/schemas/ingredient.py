"""Stock (ingredient) schemas."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class IngredientItem(BaseModel):
    """One stock line sent by the client"""
    name: str = Field(..., min_length=1, max_length=100, description="Ingredient name")
    quantity: float = Field(..., ge=0, description="Quantity to add")


class SaveIngredientsRequest(BaseModel):
    ingredients: List[IngredientItem] = Field(..., min_length=1, description="Ingredients to add")


class UpdateIngredientRequest(BaseModel):
    """Set an absolute quantity; with ``expected_version`` the write is conditional"""
    quantity: float = Field(..., ge=0, description="New quantity")
    expected_version: Optional[int] = Field(None, ge=1, description="Version read by the client")


class IngredientResponse(BaseModel):
    ingredient_id: int
    ingredient_name: str
    normalized_name: str
    quantity: float
    version: int
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "IngredientResponse":
        return cls(
            ingredient_id=row.ingredient_id,
            ingredient_name=row.ingredient_name,
            normalized_name=row.normalized_name,
            quantity=float(row.quantity),
            version=row.version,
            updated_at=row.updated_at,
        )


class SaveIngredientsData(BaseModel):
    saved_count: int = Field(..., description="Number of distinct ingredients touched")
    ingredients: List[IngredientResponse] = Field(..., description="Rows after the save")
