"""API v1 router"""
from fastapi import APIRouter

from stockchef.api.v1.routes import auth, health, ingredients, recipes

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])

# stock CRUD
api_router.include_router(ingredients.router, prefix="/ingredients", tags=["ingredients"])

# generation + cooking
api_router.include_router(recipes.router, prefix="/recipes", tags=["recipes"])
