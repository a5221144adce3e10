# utils/encoding.py
"""JSON encoding of row values read from the database."""

from typing import Any, Dict, Iterable, List
from fastapi.encoders import jsonable_encoder


def encode_bytea(value: bytes) -> str:
    """Render binary data the way PostgreSQL prints bytea: ``\\x`` plus hex digits."""
    return "\\x" + bytes(value).hex()


# psycopg returns bytea as bytes, which pydantic would try to decode as UTF-8
ROW_ENCODERS = {
    bytes: encode_bytea,
    memoryview: encode_bytea,
}


def encode_rows(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [jsonable_encoder(dict(row), custom_encoder=ROW_ENCODERS) for row in rows]
