"""User accounts - thin identity collaborator for the stock API."""
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockchef.db.models import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    return pwd_context.hash(password_bytes.decode("utf-8", errors="ignore"))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    password_bytes = plain_password.encode("utf-8")[:72]
    return pwd_context.verify(password_bytes.decode("utf-8", errors="ignore"), hashed_password)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_username(session: AsyncSession, username: str) -> User | None:
    result = await session.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    email: str,
    username: str,
    password: str,
    nickname: str | None = None,
) -> User:
    """
    Create a user (user_id is generated by the database).

    Raises:
        ValueError: email or username already taken
    """
    if await get_user_by_email(session, email):
        raise ValueError("Email already registered.")
    if await get_user_by_username(session, username):
        raise ValueError("Username already taken.")

    user = User(
        email=email,
        username=username,
        password=hash_password(password),
        nickname=nickname or username,
    )
    session.add(user)
    await session.flush()  # assigns user_id
    return user


async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
    """Return the user when the credentials match, else None."""
    user = await get_user_by_email(session, email)
    if not user:
        return None
    if not verify_password(password, user.password):
        return None
    return user
