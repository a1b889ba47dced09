import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import StorageError

logger = logging.getLogger(__name__)

_WROTE_KEY = "permits.has_writes"


class BaseRepository:
    """
    Shared session handling for repositories.

    Translates driver/ORM failures into StorageError so nothing above the
    repository sees SQLAlchemy types or messages. Tracks, per session, whether
    the unit of work has written anything: a failed read before any write is
    rolled back and marked retryable, a failed read after a write is not.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @property
    def has_writes(self) -> bool:
        return bool(self.db.info.get(_WROTE_KEY))

    def _mark_written(self) -> None:
        self.db.info[_WROTE_KEY] = True

    @asynccontextmanager
    async def _reading(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("Storage read failed during %s: %s", operation, e)
            retryable = not self.has_writes
            if retryable:
                await self.db.rollback()
            raise StorageError("The application store is unavailable", retryable=retryable) from e

    @asynccontextmanager
    async def _writing(self, operation: str) -> AsyncIterator[None]:
        self._mark_written()
        try:
            yield
        except IntegrityError:
            # Constraint violations are reported by the caller as conflicts
            raise
        except SQLAlchemyError as e:
            logger.error("Storage write failed during %s: %s", operation, e)
            raise StorageError("The application store is unavailable; re-read before retrying") from e

    async def commit(self) -> None:
        """End the unit of work early; used when a write must be durable before a lock is released."""
        async with self._writing("commit"):
            await self.db.commit()
        self.db.info.pop(_WROTE_KEY, None)
