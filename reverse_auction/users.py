import logging

from fastapi import HTTPException
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .models import User

logger = logging.getLogger(__name__)


async def is_username_taken(db: AsyncSession, username: str) -> bool:
    result = await db.execute(select(User.id).where(User.username == username))
    return result.scalar() is not None


async def register(
    db: AsyncSession,
    pwd: CryptContext,
    username: str,
    password: str,
    is_admin: bool = False,
) -> User:
    # Exact match: "Alice" and "alice" are different users.
    if await is_username_taken(db, username):
        raise HTTPException(status_code=400, detail="Username already taken")

    user = User(
        username=username,
        password=pwd.hash(password),
        is_admin=is_admin,
    )

    try:
        db.add(user)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Username already taken")

    await db.refresh(user)
    logger.info("User created", extra={"user_id": user.id, "is_admin": is_admin})
    return user


async def create_admin_user(db: AsyncSession, pwd: CryptContext, username: str, password: str) -> User:
    """Signup with ``is_admin`` forced on. The route that calls this is unauthenticated."""
    return await register(db, pwd, username, password, is_admin=True)


async def authenticate(db: AsyncSession, pwd: CryptContext, username: str, password: str) -> User:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar()

    if not user or not _verify(pwd, password, user.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    return user


def _verify(pwd: CryptContext, password: str, stored: str) -> bool:
    try:
        return pwd.verify(password, stored)
    except ValueError:
        # Stored value was written under a scheme this context doesn't know.
        return False


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return user
