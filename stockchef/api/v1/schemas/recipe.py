"""Recipe generation and cooking schemas"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class Provenance(str, Enum):
    AI = "ai"
    FALLBACK = "fallback"


class RequestedIngredient(BaseModel):
    name: str = Field(..., min_length=1, description="Ingredient name")
    quantity: Optional[float] = Field(None, gt=0, description="Usable amount; omit to use the whole stock")


class GenerateRecipesRequest(BaseModel):
    """Omit ``ingredients`` to generate from the whole stored stock"""
    ingredients: Optional[List[RequestedIngredient]] = Field(None, description="Restrict generation to these items")


class RecipeIngredient(BaseModel):
    name: str = Field(..., description="Ingredient name")
    quantity: float = Field(..., gt=0, description="Amount consumed")


class RecipeItem(BaseModel):
    recipe_id: int = Field(..., description="Id usable with /recipes/cook")
    position: int = Field(..., description="0-based rank")
    name: str
    ingredients: List[RecipeIngredient]
    score: float


class ConsultaData(BaseModel):
    consulta_id: int
    created_at: datetime
    provenance: Provenance
    attempts: int = Field(..., description="AI attempts made")
    recipes: List[RecipeItem]

    @classmethod
    def from_row(cls, consulta) -> "ConsultaData":
        return cls(
            consulta_id=consulta.consulta_id,
            created_at=consulta.created_at,
            provenance=Provenance(consulta.provenance),
            attempts=consulta.attempts,
            recipes=[
                RecipeItem(
                    recipe_id=recipe.recipe_id,
                    position=recipe.position,
                    name=recipe.name,
                    ingredients=[RecipeIngredient(**item) for item in recipe.ingredients],
                    score=recipe.score,
                )
                for recipe in consulta.recipes
            ],
        )


class CookRequest(BaseModel):
    """Either a stored ``recipe_id`` or an ad-hoc ingredient list"""
    recipe_id: Optional[int] = Field(None, description="Recipe from a previous generation")
    ingredients: Optional[List[RecipeIngredient]] = Field(None, min_length=1, description="Ad-hoc consumption")

    @model_validator(mode="after")
    def exactly_one_source(self) -> "CookRequest":
        if (self.recipe_id is None) == (self.ingredients is None):
            raise ValueError("provide exactly one of recipe_id or ingredients")
        return self
