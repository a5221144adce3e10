# sql.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any

# ─────────────────────────────────────────────────────────────────────────────
# Request Models
# ─────────────────────────────────────────────────────────────────────────────

class SqlQueryRequest(BaseModel):
    """Request model for executing a SQL statement."""
    database: Optional[str] = Field(None, description="Database to run the statement in")
    # Checked by the endpoint so a missing statement gets the plain 400 message
    sql: Optional[str] = Field(None, description="SQL text; may contain several statements")

    model_config = ConfigDict(
        extra='ignore',
        json_schema_extra={
            "examples": [{
                "database": "shop",
                "sql": "SELECT * FROM products LIMIT 10"
            }]
        }
    )


# ─────────────────────────────────────────────────────────────────────────────
# Response Models
# ─────────────────────────────────────────────────────────────────────────────

class SqlQueryResult(BaseModel):
    """Result of a SQL execution: the last result set that returned rows."""
    database: str
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    fields: List[str] = Field(default_factory=list, description="Column names of the returned rows")
    row_count: int = Field(0, alias="rowCount", description="Rows returned, or rows affected by the last statement")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [{
                "database": "shop",
                "rows": [{"id": 1, "name": "Lamp"}],
                "fields": ["id", "name"],
                "rowCount": 1
            }]
        }
    )
