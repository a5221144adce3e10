import asyncio
import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Annotated, AsyncGenerator, AsyncIterator, Dict
from fastapi import Depends, Query
from pydantic_settings import BaseSettings, SettingsConfigDict
import psycopg
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from utils.validation import require_database

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    # Default database for requests that do not name one; empty disables the fallback
    DB_NAME: str = "postgres"
    # Database used for server-wide statements (listing databases, raw SQL without a database)
    MAINTENANCE_DB: str = "postgres"

    # One pool per database, each bounded to DB_POOL_SIZE connections
    DB_POOL_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    # Seconds allowed for opening a connection, including the first probe of a database
    DB_CONNECT_TIMEOUT: int = 10

    APP_NAME: str = "DB Admin"
    APP_DESCRIPTION: str = "Browse databases, edit rows and run SQL from the browser"
    APP_VERSION: str = "1.0.0"
    APP_PORT: int = 3000
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def default_database(self) -> str | None:
        return self.DB_NAME or None

    @property
    def server_database(self) -> str:
        return self.DB_NAME or self.MAINTENANCE_DB


@lru_cache
def get_settings() -> Settings:
    """Dependency returning the process-wide settings."""
    return Settings()


# ─────────────────────────────────────────────────────────────────────────────
# Connection Pools
# ─────────────────────────────────────────────────────────────────────────────

class PoolRegistry:
    """
    Keeps one bounded connection pool per database.

    PostgreSQL binds a connection to its database when it is opened, so
    taking a connection from the pool registered for a database is the
    database selection itself. No statement ever changes the database of a
    connection that another request may reuse.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._pools: Dict[str, AsyncConnectionPool] = {}
        # One lock per database: a slow database only delays its own first use
        self._locks: Dict[str, asyncio.Lock] = {}

    def conninfo(self, database: str) -> str:
        return make_conninfo(
            host=self.settings.DB_HOST,
            port=self.settings.DB_PORT,
            user=self.settings.DB_USER,
            password=self.settings.DB_PASSWORD,
            dbname=database,
            connect_timeout=self.settings.DB_CONNECT_TIMEOUT,
        )

    async def get_pool(self, database: str) -> AsyncConnectionPool:
        pool = self._pools.get(database)
        if pool is not None:
            return pool

        async with self._locks.setdefault(database, asyncio.Lock()):
            pool = self._pools.get(database)
            if pool is None:
                conninfo = self.conninfo(database)
                # Connect once up front so an unknown database fails with the
                # server's own message instead of a pool timeout
                conn = await psycopg.AsyncConnection.connect(conninfo)
                await conn.close()

                pool = AsyncConnectionPool(
                    conninfo=conninfo,
                    open=False,
                    min_size=0,
                    max_size=self.settings.DB_POOL_SIZE,
                    timeout=self.settings.DB_POOL_TIMEOUT,
                    name=f"pool-{database}",
                    kwargs={
                        "row_factory": dict_row,
                        "autocommit": False,
                    },
                )
                await pool.open()
                self._pools[database] = pool
                logger.info("Opened connection pool for database %s (max_size=%d)", database, self.settings.DB_POOL_SIZE)
        return pool

    @asynccontextmanager
    async def connection(self, database: str) -> AsyncIterator[psycopg.AsyncConnection]:
        """Borrow a connection bound to ``database`` and return it to its pool afterwards."""
        pool = await self.get_pool(database)
        async with pool.connection() as conn:
            yield conn

    async def close(self) -> None:
        pools, self._pools = self._pools, {}
        self._locks = {}
        for database, pool in pools.items():
            await pool.close()
            logger.info("Closed connection pool for database %s", database)


# ─────────────────────────────────────────────────────────────────────────────
# Database Lifecycle
# ─────────────────────────────────────────────────────────────────────────────

registry: PoolRegistry | None = None


async def init_db(settings: Settings) -> None:
    """Create the pool registry and open the pool of the server database."""
    global registry
    registry = PoolRegistry(settings)
    try:
        await registry.get_pool(settings.server_database)
    except psycopg.Error as e:
        # The console stays usable for other databases; requests report the error
        logger.error("Could not connect to database %s: %s", settings.server_database, e)


async def close_db() -> None:
    """Close every connection pool."""
    global registry
    if registry:
        await registry.close()
        registry = None


def resolve_database(
    database: Annotated[str | None, Query(description="Target database; falls back to DB_NAME")] = None,
    settings: Settings = Depends(get_settings),
) -> str:
    """Dependency resolving the database a request targets."""
    return require_database(database, settings.default_database)


def get_registry() -> PoolRegistry:
    """Dependency to get the pool registry."""
    if registry is None:
        raise RuntimeError("Database pool registry is not initialized")
    return registry


async def get_db(
    database: str = Depends(resolve_database),
    pools: PoolRegistry = Depends(get_registry),
) -> AsyncGenerator[psycopg.AsyncConnection, None]:
    """Dependency to get a connection bound to the requested database."""
    async with pools.connection(database) as conn:
        yield conn


async def get_server_db(
    settings: Settings = Depends(get_settings),
    pools: PoolRegistry = Depends(get_registry),
) -> AsyncGenerator[psycopg.AsyncConnection, None]:
    """Dependency to get a connection for server-wide catalog queries."""
    async with pools.connection(settings.server_database) as conn:
        yield conn
