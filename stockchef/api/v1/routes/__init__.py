"""API v1 routes package"""

from stockchef.api.v1.routes import auth, health, ingredients, recipes

__all__ = [
    "auth",
    "health",
    "ingredients",
    "recipes",
]
