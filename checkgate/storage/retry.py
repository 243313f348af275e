"""Bounded transient-fault retry at the storage boundary."""

from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import StorageError
from ..utils.logging import get_logger

logger = get_logger("storage.retry")

T = TypeVar("T")


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.warning(
        "storage_retrying",
        attempt=state.attempt_number,
        error=str(error),
    )


class StorageRetry:
    """Runs a unit of work, retrying only ``OperationalError`` (lock, lost connection).

    Constraint violations are never retried. Whatever escapes is wrapped in
    ``StorageError`` so callers see one exception type.
    """

    def __init__(self, attempts: int = 3, backoff_seconds: float = 0.5):
        self._attempts = max(1, attempts)
        self._backoff = max(0.0, backoff_seconds)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=self._backoff, max=self._backoff * 8),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def run(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await self._retrying()(fn)
        except IntegrityError as e:
            raise StorageError(f"{operation}: constraint violation: {e.orig}") from e
        except OperationalError as e:
            raise StorageError(
                f"{operation}: failed after {self._attempts} attempts: {e.orig}",
                transient=True,
            ) from e
        except SQLAlchemyError as e:
            raise StorageError(f"{operation}: {e}") from e
