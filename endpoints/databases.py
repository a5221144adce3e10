# databases.py
"""Catalog endpoints: the databases on the server and the tables of one database."""

import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
import psycopg

from db import get_db, get_server_db, resolve_database
from endpoints.errors import RESP_ERRORS
from models.table import DatabaseRow, TableListResponse, TableRow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get(
    "/databases",
    response_model=List[DatabaseRow],
    responses=RESP_ERRORS,
    summary="List Databases"
)
async def list_databases(
    db: psycopg.AsyncConnection = Depends(get_server_db),
) -> List[DatabaseRow]:
    """List the databases the configured user can see, ordered by name."""
    try:
        result = await db.execute("""
            SELECT datname AS "Database"
            FROM pg_database
            WHERE datistemplate = FALSE AND datallowconn = TRUE
            ORDER BY datname
        """)
        records = await result.fetchall()
        return [DatabaseRow(**record) for record in records]
    except psycopg.Error as e:
        logger.error("Failed to list databases: %s", e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get(
    "/tables",
    response_model=TableListResponse,
    responses=RESP_ERRORS,
    summary="List Tables"
)
async def list_tables(
    database: str = Depends(resolve_database),
    db: psycopg.AsyncConnection = Depends(get_db),
) -> TableListResponse:
    """
    List the base tables of a database.

    - **database**: Database to inspect. Falls back to `DB_NAME`; 400 when neither is set.
    """
    try:
        result = await db.execute("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = current_schema()
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """)
        records = await result.fetchall()
        return TableListResponse(
            database=database,
            tables=[TableRow(**record) for record in records]
        )
    except psycopg.Error as e:
        logger.error("Failed to list tables of %s: %s", database, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
