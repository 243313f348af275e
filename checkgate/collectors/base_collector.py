"""Abstract base class for snapshot collectors."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, Union

from ..errors import CollectionError, CollectionErrorKind
from ..schemas import Snapshot
from ..utils.logging import get_logger


class BaseCollector(ABC):
    """Base class that host and cluster collectors inherit from.

    ``collect()`` is a blocking call against an instrumentation source. It
    either returns a fully populated snapshot or raises. ``collect_async()``
    runs it on the default executor under a timeout and turns every failure
    into a ``CollectionError`` value; it never raises and never returns a
    partial snapshot.
    """

    def __init__(self, name: str, timeout_seconds: float = 10.0):
        self.name = name
        self.timeout_seconds = timeout_seconds
        self.health_status = "initialized"
        self.last_success: Optional[datetime] = None
        self.last_error: Optional[CollectionError] = None
        self.consecutive_failures = 0
        self.logger = get_logger(f"collector.{name}")

    @abstractmethod
    def collect(self) -> Snapshot:
        """Sample the source once. Blocking; raises on failure."""
        ...

    def classify_error(self, exc: Exception) -> CollectionErrorKind:
        """Map an exception raised by ``collect()`` to a failure kind."""
        if isinstance(exc, (ValueError, KeyError, TypeError, AttributeError)):
            return CollectionErrorKind.INVALID_DATA
        return CollectionErrorKind.UNAVAILABLE

    async def collect_async(self) -> Union[Snapshot, CollectionError]:
        loop = asyncio.get_event_loop()
        try:
            # The worker thread is not interruptible; on timeout its result is discarded
            snapshot = await asyncio.wait_for(
                loop.run_in_executor(None, self.collect),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = CollectionError(
                kind=CollectionErrorKind.TIMEOUT,
                source=self.name,
                message=f"no result within {self.timeout_seconds}s",
            )
        except Exception as e:
            error = CollectionError(
                kind=self.classify_error(e),
                source=self.name,
                message=str(e) or type(e).__name__,
            )
        else:
            self.last_success = datetime.now(timezone.utc)
            self.last_error = None
            self.consecutive_failures = 0
            self.health_status = "running"
            return snapshot

        self.last_error = error
        self.consecutive_failures += 1
        self.health_status = "degraded"
        self.logger.warning(
            "collection_failed",
            source=self.name,
            error_kind=error.kind.value,
            error=error.message,
            consecutive_failures=self.consecutive_failures,
        )
        return error

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "health_status": self.health_status,
            "last_success": self.last_success.isoformat() if self.last_success else None,
            "last_error": str(self.last_error) if self.last_error else None,
            "consecutive_failures": self.consecutive_failures,
        }
