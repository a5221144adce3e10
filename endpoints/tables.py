# tables.py
import logging
from typing import Annotated, Dict, Any
import psycopg
from psycopg import sql
from fastapi import APIRouter, Depends, HTTPException, Query, status

from db import get_db, resolve_database
from endpoints.errors import RESP_ERRORS
from models.table import ColumnInfo, StructureResponse, RowsPage, InsertResult, MutationResult
from utils.encoding import encode_rows
from utils.validation import strip_dict_keys, adapt_row_values

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/table", tags=["tables"])

# Rows are edited and deleted through a column literally named "id"
ID_COLUMN = "id"

# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────

# Column metadata shaped like a DESCRIBE result, in ordinal column order
STRUCTURE_SQL = """
    SELECT
        c.column_name AS "Field",
        CASE WHEN c.character_maximum_length IS NOT NULL
             THEN c.data_type || '(' || c.character_maximum_length || ')'
             ELSE c.data_type
        END AS "Type",
        c.is_nullable AS "Null",
        COALESCE(
            (SELECT CASE MIN(CASE tc.constraint_type
                                 WHEN 'PRIMARY KEY' THEN 1
                                 WHEN 'UNIQUE' THEN 2
                                 ELSE 3
                             END)
                        WHEN 1 THEN 'PRI'
                        WHEN 2 THEN 'UNI'
                        WHEN 3 THEN 'MUL'
                    END
             FROM information_schema.table_constraints tc
             JOIN information_schema.key_column_usage kcu
               ON tc.constraint_name = kcu.constraint_name
              AND tc.table_schema = kcu.table_schema
              AND tc.table_name = kcu.table_name
             WHERE tc.table_schema = c.table_schema
               AND tc.table_name = c.table_name
               AND kcu.column_name = c.column_name
            ), ''
        ) AS "Key",
        c.column_default AS "Default",
        CASE WHEN c.is_identity = 'YES' OR c.column_default LIKE 'nextval(%%'
             THEN 'auto_increment'
             ELSE ''
        END AS "Extra"
    FROM information_schema.columns c
    WHERE c.table_schema = current_schema()
      AND c.table_name = %s
    ORDER BY c.ordinal_position
"""


def backend_error(action: str, database: str, table: str, e: psycopg.Error) -> HTTPException:
    """Log a driver failure and turn it into a 500 carrying the driver's message."""
    logger.error("Failed to %s on %s.%s: %s", action, database, table, e)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


# ─────────────────────────────────────────────────────────────────────────────
# TABLE STRUCTURE
# ─────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{table}/structure",
    response_model=StructureResponse,
    responses=RESP_ERRORS,
    summary="Get Table Structure"
)
async def get_table_structure(
    table: str,
    database: str = Depends(resolve_database),
    db: psycopg.AsyncConnection = Depends(get_db),
) -> StructureResponse:
    """Column metadata of a table (Field, Type, Null, Key, Default, Extra) in column order."""
    try:
        result = await db.execute(STRUCTURE_SQL, (table,))
        records = await result.fetchall()
        return StructureResponse(
            database=database,
            table=table,
            columns=[ColumnInfo(**record) for record in records]
        )
    except psycopg.Error as e:
        raise backend_error("describe table", database, table, e)


# ─────────────────────────────────────────────────────────────────────────────
# TABLE DATA (ROW) ENDPOINTS
# ─────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{table}/rows",
    response_model=RowsPage,
    responses=RESP_ERRORS,
    summary="List Rows"
)
async def list_rows(
    table: str,
    limit: Annotated[int, Query(description="Page size; not capped")] = 50,
    offset: Annotated[int, Query(description="Rows to skip")] = 0,
    database: str = Depends(resolve_database),
    db: psycopg.AsyncConnection = Depends(get_db),
) -> RowsPage:
    """
    Get one page of rows plus the table's total row count.

    The page and the count are two separate statements; the total is
    recomputed on every call.
    """
    try:
        data_sql = sql.SQL("SELECT * FROM {} LIMIT %s OFFSET %s").format(sql.Identifier(table))
        result = await db.execute(data_sql, (limit, offset))
        rows = encode_rows(await result.fetchall())

        count_sql = sql.SQL("SELECT COUNT(*) AS total FROM {}").format(sql.Identifier(table))
        count_result = await db.execute(count_sql)
        count_row = await count_result.fetchone()
        total = count_row["total"] if count_row else 0

        return RowsPage(
            database=database,
            table=table,
            rows=rows,
            total=total,
            limit=limit,
            offset=offset
        )
    except psycopg.Error as e:
        raise backend_error("list rows", database, table, e)


@router.post(
    "/{table}/rows",
    response_model=InsertResult,
    responses=RESP_ERRORS,
    summary="Insert Row"
)
async def insert_row(
    table: str,
    row_data: Dict[str, Any],
    database: str = Depends(resolve_database),
    db: psycopg.AsyncConnection = Depends(get_db),
) -> InsertResult:
    """
    Insert the body's field map as a new row.

    An empty map inserts a row of column defaults. `insertedId` is the new
    row's `id` value when the table has an `id` column.
    """
    row_data = adapt_row_values(strip_dict_keys(row_data))

    if row_data:
        insert_sql = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(map(sql.Identifier, row_data)),
            sql.SQL(", ").join(sql.Placeholder() * len(row_data)),
        )
        params = tuple(row_data.values())
    else:
        insert_sql = sql.SQL("INSERT INTO {} DEFAULT VALUES RETURNING *").format(sql.Identifier(table))
        params = None

    try:
        result = await db.execute(insert_sql, params)
        inserted_row = await result.fetchone()
        await db.commit()
    except psycopg.Error as e:
        await db.rollback()
        raise backend_error("insert row", database, table, e)

    return InsertResult(inserted_id=inserted_row.get(ID_COLUMN) if inserted_row else None)


@router.put(
    "/{table}/rows/{row_id}",
    response_model=MutationResult,
    responses=RESP_ERRORS,
    summary="Update Row"
)
async def update_row(
    table: str,
    row_id: str,
    updates: Dict[str, Any],
    database: str = Depends(resolve_database),
    db: psycopg.AsyncConnection = Depends(get_db),
) -> MutationResult:
    """
    Update the row whose `id` equals the path id.

    A missing row is not an error: the response reports `affectedRows: 0`.
    """
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Update data cannot be empty")

    updates = adapt_row_values(strip_dict_keys(updates))

    update_sql = sql.SQL("UPDATE {} SET {} WHERE {} = %s").format(
        sql.Identifier(table),
        sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder())
            for column in updates
        ),
        sql.Identifier(ID_COLUMN),
    )

    try:
        result = await db.execute(update_sql, (*updates.values(), row_id))
        affected = result.rowcount
        await db.commit()
    except psycopg.Error as e:
        await db.rollback()
        raise backend_error("update row", database, table, e)

    return MutationResult(affected_rows=max(affected, 0))


@router.delete(
    "/{table}/rows/{row_id}",
    response_model=MutationResult,
    responses=RESP_ERRORS,
    summary="Delete Row"
)
async def delete_row(
    table: str,
    row_id: str,
    database: str = Depends(resolve_database),
    db: psycopg.AsyncConnection = Depends(get_db),
) -> MutationResult:
    """Delete the row whose `id` equals the path id."""
    delete_sql = sql.SQL("DELETE FROM {} WHERE {} = %s").format(
        sql.Identifier(table),
        sql.Identifier(ID_COLUMN),
    )

    try:
        result = await db.execute(delete_sql, (row_id,))
        affected = result.rowcount
        await db.commit()
    except psycopg.Error as e:
        await db.rollback()
        raise backend_error("delete row", database, table, e)

    return MutationResult(affected_rows=max(affected, 0))
