"""
Database decorators for automatic rollback.

Service methods own their unit of work: they commit on success. These
decorators guarantee the session is rolled back when anything raises, so
no half-applied mutation survives in the session.
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.exceptions import TREAT_AS_SUCCESS


T = TypeVar("T")


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    """Locate the session among call arguments or on ``self``."""
    session = kwargs.get("session")
    if session is not None:
        return session

    if args:
        first = args[0]
        if isinstance(first, AsyncSession):
            return first
        # Bound method: service instances keep their session on self
        owner_session = getattr(first, "session", None)
        if isinstance(owner_session, AsyncSession):
            return owner_session

    return None


def with_rollback_on_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that rolls back the session on any exception.

    Usage:
        class ReferralLedger:
            @with_rollback_on_error
            async def append_referral(self, ...):
                ...
                await self.session.commit()

    The decorator will:
    1. Execute the wrapped coroutine
    2. If an exception occurs, call session.rollback()
    3. Re-raise the original exception

    Args:
        func: Async function or method to wrap. The session is taken from a
              ``session`` keyword, the first positional argument, or
              ``self.session``.

    Returns:
        Wrapped function with automatic rollback on error
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)

        if session is None:
            logger.warning(
                f"Function {func.__name__} decorated with @with_rollback_on_error "
                f"but no session argument found. Rollback will not be performed."
            )
            return await func(*args, **kwargs)

        try:
            return await func(*args, **kwargs)
        except TREAT_AS_SUCCESS:
            # Raised before any write; keep loaded objects usable
            raise
        except Exception as e:
            try:
                await session.rollback()
                logger.debug(
                    f"Rollback performed in {func.__name__} due to error: {type(e).__name__}"
                )
            except Exception as rollback_error:
                logger.error(
                    f"Failed to rollback in {func.__name__}: {rollback_error}",
                    exc_info=True
                )
            raise

    return wrapper
