import logging
from typing import Optional, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import UserFlags

logger = logging.getLogger(__name__)


async def get_user_flags(db: AsyncSession, user_id: str) -> UserFlags | None:
    """
    Retrieves the stored flags for a user.
    """
    result = await db.execute(
        select(UserFlags).where(UserFlags.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def create_or_update_user_flags(
    db: AsyncSession,
    user_id: str,
    last_roll_prompt_value: Optional[int] = None
) -> UserFlags:
    """
    Creates the user's flags if they don't exist, or updates them if they do.
    Only updates fields that are explicitly provided (not None).
    """
    existing_flags = await get_user_flags(db, user_id)

    if existing_flags:
        if last_roll_prompt_value is not None:
            existing_flags.last_roll_prompt_value = last_roll_prompt_value
        db_flags = existing_flags
    else:
        db_flags = UserFlags(
            user_id=user_id,
            last_roll_prompt_value=last_roll_prompt_value or 0
        )
        db.add(db_flags)

    try:
        await db.commit()
        await db.refresh(db_flags)
        return db_flags
    except IntegrityError:
        await db.rollback()
        logger.error(f"create_or_update_user_flags: integrity error for user {user_id}", exc_info=True)
        raise


class UserFlagStore:
    """
    Per-user memo used by prompt rolls ("last prompted pool size").
    Opens a short-lived session per call.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def get_last_roll_prompt_value(self, user_id: str) -> int:
        async with self._session_factory() as session:
            flags = await get_user_flags(session, user_id)
        value = flags.last_roll_prompt_value if flags else 0
        logger.debug(f"UserFlagStore: last roll prompt value for user {user_id} is {value}")
        return value

    async def set_last_roll_prompt_value(self, user_id: str, value: int) -> None:
        async with self._session_factory() as session:
            await create_or_update_user_flags(session, user_id, last_roll_prompt_value=value)
        logger.info(f"UserFlagStore: stored last roll prompt value {value} for user {user_id}")
