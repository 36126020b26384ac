"""
Database helper functions for common patterns.
Reduces boilerplate in the store and service layer.
"""

import asyncio
import functools
from typing import Any

import psycopg

from rewear.db.pool import db_pool
from rewear.infrastructure.observability.logging import get_logger
from rewear.services.contracts import StoreError

logger = get_logger(__name__)


class DatabaseError(StoreError):
    """Custom exception for database operations."""


async def fetch_one(query: Any, params: tuple | dict = ()) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        query: SQL string or composed psycopg.sql object
        params: Query parameters

    Returns:
        Dict with row data or None if no results
    """
    try:
        async with db_pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
                return row if row else None

    except psycopg.Error as e:
        logger.error("Database fetch_one error", error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_one") from e


async def fetch_all(query: Any, params: tuple | dict = ()) -> list[dict[str, Any]]:
    """
    Execute query and return all rows as list of dicts.

    Args:
        query: SQL string or composed psycopg.sql object
        params: Query parameters

    Returns:
        List of dicts with row data
    """
    try:
        async with db_pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()

    except psycopg.Error as e:
        logger.error("Database fetch_all error", error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_all") from e


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Decorator to retry database operations on temporary failures.

    Store errors raised by the wrapped function (including not-found) pass
    through untouched; other failures become DatabaseError.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries (exponential backoff)
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)

                except psycopg.OperationalError as e:
                    if attempt < max_retries:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Database operation failed, retrying",
                            operation=func.__name__,
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            delay=delay,
                            error=str(e),
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            "Database operation failed after all retries",
                            operation=func.__name__,
                            attempts=max_retries + 1,
                            error=str(e),
                        )
                        raise DatabaseError(
                            f"Operation failed after {max_retries} retries: {e}",
                            operation=func.__name__,
                            recoverable=False,
                        ) from e

                except DatabaseError as e:
                    cause = e.__cause__
                    if isinstance(cause, psycopg.OperationalError) and attempt < max_retries:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Database operation failed, retrying",
                            operation=func.__name__,
                            attempt=attempt + 1,
                            delay=delay,
                            error=str(e),
                        )
                        await asyncio.sleep(delay)
                        continue
                    raise

                except StoreError:
                    raise

                except (psycopg.IntegrityError, psycopg.DataError) as e:
                    logger.error("Database operation failed with permanent error", error=str(e))
                    raise DatabaseError(
                        f"Permanent database error: {e}", operation=func.__name__, recoverable=False
                    ) from e

                except psycopg.Error as e:
                    logger.error("Database operation failed with unknown error", error=str(e))
                    raise DatabaseError(
                        f"Unknown database error: {e}", operation=func.__name__, recoverable=False
                    ) from e

        return wrapper

    return decorator
