"""asyncpg pool for the PostgreSQL settings store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import asyncpg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolConfig:
    """Pool sizing and connect retry policy."""

    min_size: int = 1
    max_size: int = 2
    timeout: float = 5.0
    command_timeout: float = 10.0
    max_retries: int = 3
    retry_delay: float = 2.0
    ssl: str | None = None  # e.g. "require" for hosted databases

    def backoff(self, attempt: int) -> float:
        """Delay before retrying after failed ``attempt`` (1-based)."""
        return self.retry_delay * (2 ** (attempt - 1))


class DatabaseManager:
    """Owns the pool: ``connect`` with retry, ``pool`` while open, ``disconnect``."""

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None

    @property
    def target(self) -> str:
        """host:port/database, without credentials."""
        parsed = urlparse(self.database_url)
        return f"{parsed.hostname or 'localhost'}:{parsed.port or 5432}{parsed.path or ''}"

    @property
    def connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool

    async def _open_pool(self) -> asyncpg.Pool:
        cfg = self.config
        options: dict[str, Any] = {
            "min_size": cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
        }
        if cfg.ssl:
            options["ssl"] = cfg.ssl
        pool = await asyncpg.create_pool(self.database_url, **options)
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except BaseException:
            await pool.close()
            raise
        return pool

    async def connect(self) -> None:
        """Open and verify the pool, retrying with exponential back-off.

        Re-raises the last error once ``max_retries`` attempts have failed.
        """
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        attempts = self.config.max_retries
        for attempt in range(1, attempts + 1):
            try:
                self._pool = await self._open_pool()
            except (OSError, asyncpg.PostgresError, asyncio.TimeoutError) as e:
                if attempt == attempts:
                    logger.error(f"Settings database {self.target} unreachable after {attempts} attempts: {e!r}")
                    raise
                delay = self.config.backoff(attempt)
                logger.warning(
                    f"Settings database {self.target} attempt {attempt}/{attempts} failed "
                    f"({type(e).__name__}), retrying in {delay:g}s"
                )
                await asyncio.sleep(delay)
            else:
                logger.info(f"Connected to settings database {self.target}")
                return

    async def disconnect(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        try:
            await pool.close()
        except Exception as e:
            logger.exception(f"Error closing database pool: {e}")
        else:
            logger.info("Database pool closed")

    async def check_health(self) -> bool:
        """True if the pool can run a trivial query."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncpg.PostgresError, asyncio.TimeoutError):
            return False
        return True
