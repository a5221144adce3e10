# sql.py
"""Raw SQL execution endpoint."""

import logging
from typing import Any, Dict, List, Tuple
import psycopg
from fastapi import APIRouter, Depends, HTTPException, status

from db import PoolRegistry, Settings, get_registry, get_settings
from endpoints.errors import RESP_ERRORS
from models.sql import SqlQueryRequest, SqlQueryResult
from utils.encoding import encode_rows

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sql"])


async def collect_results(cur: psycopg.AsyncCursor) -> Tuple[List[Dict[str, Any]], List[str], int]:
    """
    Walk every result of a (possibly multi-statement) execution.

    Returns the rows and column names of the last result that produced rows,
    and the row count of the last statement: rows returned, or rows affected
    for statements without a result set.
    """
    rows: List[Dict[str, Any]] = []
    fields: List[str] = []
    row_count = 0

    while True:
        if cur.description is not None:
            fields = [desc.name for desc in cur.description]
            rows = encode_rows(await cur.fetchall())
            row_count = len(rows)
        else:
            row_count = cur.rowcount if cur.rowcount >= 0 else 0
        if not cur.nextset():
            break

    return rows, fields, row_count


# ─────────────────────────────────────────────────────────────────────────────
# SQL QUERY EXECUTION
# ─────────────────────────────────────────────────────────────────────────────

@router.post(
    "/query",
    response_model=SqlQueryResult,
    responses=RESP_ERRORS,
    summary="Execute SQL",
    description="Execute SQL text verbatim. Several statements separated by semicolons are allowed."
)
async def execute_query(
    request: SqlQueryRequest,
    settings: Settings = Depends(get_settings),
    pools: PoolRegistry = Depends(get_registry),
) -> SqlQueryResult:
    """
    Execute the statement text in the requested database.

    Without a `database` the statement runs in `DB_NAME`, or in the
    maintenance database when no default is configured. The text runs in
    autocommit mode, so the server commits it as it goes; several statements
    sent together share one implicit transaction and fail as a whole.
    """
    query = (request.sql or "").strip()
    if not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="sql is required")

    database = (request.database or "").strip() or settings.server_database
    logger.info("Executing SQL in %s: %s", database, query[:100])

    async with pools.connection(database) as conn:
        # CREATE DATABASE and VACUUM cannot run inside a transaction block
        await conn.set_autocommit(True)
        try:
            async with conn.cursor() as cur:
                await cur.execute(query)
                rows, fields, row_count = await collect_results(cur)
        except psycopg.Error as e:
            logger.error("SQL execution failed in %s: %s", database, e)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
        finally:
            await conn.set_autocommit(False)

    return SqlQueryResult(
        database=database,
        rows=rows,
        fields=fields,
        row_count=row_count
    )
