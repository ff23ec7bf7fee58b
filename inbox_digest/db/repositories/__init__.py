"""Repositories: accounts, settings, digests, processed-message ledger, notifications."""

import functools
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from inbox_digest.errors import PersistenceError
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.db")

F = TypeVar("F", bound=Callable)


def wraps_db_errors(operation: str) -> Callable[[F], F]:
    """Re-raise SQLAlchemy failures from ``operation`` as PersistenceError."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except SQLAlchemyError as e:
                logger.error("db.operation_failed", operation=operation, error=str(e))
                raise PersistenceError(f"{operation} failed: {e}") from e

        return wrapper  # type: ignore[return-value]

    return decorator
