"""Six-digit fridge unlock codes."""

from __future__ import annotations

import secrets

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

UNLOCK_CODE_LENGTH = 6


def local_unlock_code() -> str:
    """Random zero-padded 6-digit code."""
    return f"{secrets.randbelow(10**UNLOCK_CODE_LENGTH):0{UNLOCK_CODE_LENGTH}d}"


def is_valid_unlock_code(code: object) -> bool:
    return isinstance(code, str) and len(code) == UNLOCK_CODE_LENGTH and code.isdigit()


async def generate_unlock_code(db: AsyncSession) -> str:
    """Ask the store's ``generate_unlock_code()`` function, else generate locally.

    The store function only exists on PostgreSQL. It runs inside a SAVEPOINT
    so a failure does not abort the surrounding checkout transaction.
    """
    if db.get_bind().dialect.name != "postgresql":
        return local_unlock_code()

    code: object = None
    try:
        async with db.begin_nested():
            result = await db.execute(text("SELECT generate_unlock_code()"))
            code = result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.warning("unlock_code_generator_failed", exc_info=True)

    if is_valid_unlock_code(code):
        return code  # type: ignore[return-value]
    return local_unlock_code()
