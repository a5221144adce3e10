# utils/validation.py
"""Shared request validation helpers for gateway endpoints."""

from typing import Any, Dict
from fastapi import HTTPException, status
from psycopg.types.json import Json


def require_database(database: str | None, default: str | None) -> str:
    """
    Pick the database a request targets.

    Args:
        database: The database named by the request, or None
        default: The configured default database, or None

    Returns:
        The database name to connect to

    Raises:
        HTTPException: 400 Bad Request if neither is set
    """
    database = database.strip() if database else database
    if database:
        return database
    if default:
        return default
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="database is required"
    )


def strip_dict_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Strip leading and trailing whitespace from all dictionary keys."""
    return {k.strip(): v for k, v in data.items()}


def adapt_row_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Wrap JSON objects so psycopg can bind them to json/jsonb columns.

    Lists are left as they are and bind as PostgreSQL arrays.
    """
    return {k: Json(v) if isinstance(v, dict) else v for k, v in data.items()}
