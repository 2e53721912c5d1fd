"""Database package - models, session, and base classes."""
from stockchef.db.base import Base
from stockchef.db.models import Consulta, ConsultaRecipe, User, UserIngredient
from stockchef.db.session import SessionLocal, engine, get_session, init_models

__all__ = [
    "Base",
    "User",
    "UserIngredient",
    "Consulta",
    "ConsultaRecipe",
    # Session
    "engine",
    "SessionLocal",
    "get_session",
    "init_models",
]
