"""Database models."""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DECIMAL,
    JSON,
    BigInteger,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockchef.db.base import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class User(Base):
    """Account that owns a stock and its generation results."""

    __tablename__ = "User"

    user_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    nickname: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.current_timestamp())

    def __repr__(self) -> str:
        return f"<User(user_id={self.user_id}, username={self.username})>"


class UserIngredient(Base):
    """Stock item. ``version`` grows by one on every mutation."""

    __tablename__ = "UserIngredient"
    __table_args__ = (UniqueConstraint("user_id", "normalized_name", name="uq_user_ingredient_name"),)

    ingredient_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True, comment="owner")
    ingredient_name: Mapped[str] = mapped_column(String(100), nullable=False, comment="display name")
    normalized_name: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[float] = mapped_column(DECIMAL(12, 3, asdecimal=False), nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp()
    )

    def __repr__(self) -> str:
        return (
            f"<UserIngredient(ingredient_id={self.ingredient_id}, name={self.normalized_name}, "
            f"quantity={self.quantity}, version={self.version})>"
        )


class Consulta(Base):
    """One generation result. Written once, never updated."""

    __tablename__ = "Consulta"

    consulta_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    provenance: Mapped[str] = mapped_column(Enum("ai", "fallback", name="provenance_enum"), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="AI attempts made")

    recipes: Mapped[list["ConsultaRecipe"]] = relationship(
        back_populates="consulta",
        order_by="ConsultaRecipe.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Consulta(consulta_id={self.consulta_id}, user_id={self.user_id}, provenance={self.provenance})>"


class ConsultaRecipe(Base):
    """Ranked recipe stored with its generation result."""

    __tablename__ = "ConsultaRecipe"

    recipe_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    consulta_id: Mapped[int] = mapped_column(ForeignKey("Consulta.consulta_id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, comment="0-based rank")
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    ingredients: Mapped[list] = mapped_column(JSON, nullable=False, comment="[{name, quantity}]")
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    consulta: Mapped[Consulta] = relationship(back_populates="recipes")

    def __repr__(self) -> str:
        return f"<ConsultaRecipe(recipe_id={self.recipe_id}, name={self.name}, position={self.position})>"
