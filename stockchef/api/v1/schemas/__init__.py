"""API v1 schemas package"""

from stockchef.api.v1.schemas.common import ApiResponse
from stockchef.api.v1.schemas.ingredient import IngredientResponse, SaveIngredientsData
from stockchef.api.v1.schemas.recipe import ConsultaData, CookRequest, GenerateRecipesRequest, RecipeItem

__all__ = [
    # Common
    "ApiResponse",
    # Ingredients
    "IngredientResponse",
    "SaveIngredientsData",
    # Recipes
    "ConsultaData",
    "CookRequest",
    "GenerateRecipesRequest",
    "RecipeItem",
]
