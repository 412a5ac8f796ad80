"""
Unit of work - one AsyncSession transaction that commits or rolls back as a whole
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.exceptions import StorageError
from parcelhub.core.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """
    Run the enclosed block as a single transaction.

    Commits when the block finishes. Any exception rolls the whole block back;
    SQLAlchemy failures are re-raised as ``StorageError`` so callers never see
    a half-applied settlement.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Transaction rolled back",
            extra_data={"operation": operation, "error": str(e)},
            exc_info=True
        )
        raise StorageError(operation) from e
    except BaseException:
        await db.rollback()
        raise
