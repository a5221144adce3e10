from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any

# ─────────────────────────────────────────────────────────────────────────────
# 1. Catalog Models
# ─────────────────────────────────────────────────────────────────────────────
class DatabaseRow(BaseModel):
    database: str = Field(..., alias="Database", description="Database name")

    model_config = ConfigDict(populate_by_name=True)


class TableRow(BaseModel):
    table_name: str = Field(..., description="Table name")


class TableListResponse(BaseModel):
    database: str
    tables: List[TableRow] = Field(default_factory=list)

# ─────────────────────────────────────────────────────────────────────────────
# 2. Structure Models
# ─────────────────────────────────────────────────────────────────────────────
class ColumnInfo(BaseModel):
    """Column metadata in the layout of a DESCRIBE result."""
    field: str = Field(..., alias="Field", description="Column name")
    type: str = Field(..., alias="Type", description="Declared data type")
    null: str = Field(..., alias="Null", description="YES when the column accepts NULL")
    key: str = Field("", alias="Key", description="PRI, UNI, MUL or empty")
    default: Optional[str] = Field(None, alias="Default", description="Default value expression")
    extra: str = Field("", alias="Extra", description="auto_increment for serial and identity columns")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [{
                "Field": "id",
                "Type": "integer",
                "Null": "NO",
                "Key": "PRI",
                "Default": "nextval('users_id_seq'::regclass)",
                "Extra": "auto_increment"
            }]
        }
    )


class StructureResponse(BaseModel):
    database: str
    table: str
    columns: List[ColumnInfo] = Field(default_factory=list)

# ─────────────────────────────────────────────────────────────────────────────
# 3. Row Models
# ─────────────────────────────────────────────────────────────────────────────
class RowsPage(BaseModel):
    """A page window of table rows plus the table's total row count."""
    database: str
    table: str
    rows: List[Dict[str, Any]]
    total: int
    limit: int
    offset: int

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{
                "database": "shop",
                "table": "products",
                "rows": [{"id": 1, "name": "Lamp", "price": "19.90"}],
                "total": 120,
                "limit": 50,
                "offset": 0
            }]
        }
    )


class InsertResult(BaseModel):
    success: bool = True
    inserted_id: Optional[Any] = Field(None, alias="insertedId", description="Value of the new row's id column, if any")

    model_config = ConfigDict(populate_by_name=True)


class MutationResult(BaseModel):
    success: bool = True
    affected_rows: int = Field(..., alias="affectedRows", description="Rows matched by the id; 0 is not an error")

    model_config = ConfigDict(populate_by_name=True)
