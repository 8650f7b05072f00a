"""
Base service class.

Caller-facing services share a session, a logger bound to the service
name, and the ``log_operation`` decorator that records each call's
outcome and duration.
"""

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.exceptions import AffiliateProgramError


T = TypeVar("T")


class BaseService:
    """
    Base service class.

    Args:
        session: Async database session, shared with every component
            the service delegates to
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Log a facade call with its outcome and timing.

    Facade methods return ``(result, error_message)``. A call that returns
    an error message is logged as declined; one that raises is logged as
    failed with the error code of affiliate program errors.

    Usage:
        @log_operation
        async def approve_payout(self, request_id: int):
            ...
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        start_time = time.monotonic()

        self.logger.debug(
            f"Starting {func.__name__}",
            extra={
                "function": func.__name__,
                "args_count": len(args),
                "kwargs_keys": list(kwargs.keys()),
            },
        )

        try:
            result = await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(
                f"Failed {func.__name__}",
                extra={
                    "function": func.__name__,
                    "duration_seconds": round(time.monotonic() - start_time, 3),
                    "error": str(e),
                    "error_code": (
                        e.code if isinstance(e, AffiliateProgramError) else None
                    ),
                },
                exc_info=True,
            )
            raise

        extra = {
            "function": func.__name__,
            "duration_seconds": round(time.monotonic() - start_time, 3),
        }
        if isinstance(result, tuple) and len(result) == 2 and result[1]:
            self.logger.info(
                f"Declined {func.__name__}", extra={**extra, "reason": result[1]}
            )
        else:
            self.logger.info(f"Completed {func.__name__}", extra=extra)
        return result

    return wrapper
