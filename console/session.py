# session.py
import logging
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from console.client import GatewayClient, GatewayError
from console.view import PageInfo, RowEntry, ViewState, page_info

logger = logging.getLogger(__name__)


class MissingRowIdError(Exception):
    """Raised when a row without an ``id`` column is saved or deleted."""


class SqlOutcome(BaseModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    fields: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None


def _database_name(row: Dict[str, Any]) -> Optional[str]:
    return row.get("Database") or row.get("database") or next(iter(row.values()), None)


def _table_name(row: Dict[str, Any]) -> Optional[str]:
    return row.get("table_name") or next(iter(row.values()), None)


class ConsoleSession:
    """
    The admin console's behaviour without a page around it.

    Holds the view state and drives the gateway the way the browser console
    does: picking a database loads its tables and opens the first one,
    picking a table loads its structure and first page, paging re-fetches,
    and sorting or filtering only re-derives the visible rows.

    Load failures are recorded in ``status`` and logged; failures of row
    mutations propagate as ``GatewayError``.
    """

    def __init__(self, client: GatewayClient, limit: int = 50):
        self.client = client
        self.state = ViewState(limit=limit)
        self.databases: List[str] = []
        self.tables: List[str] = []
        self.columns: List[Dict[str, Any]] = []
        self.total = 0
        self.status = ""

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    async def load_databases(self) -> None:
        self.status = "Loading databases..."
        try:
            rows = await self.client.list_databases()
        except GatewayError as e:
            logger.error("Error loading databases: %s", e)
            self.status = "Error loading databases"
            return

        self.databases = [name for name in map(_database_name, rows) if name]
        if self.state.database not in self.databases:
            self.state.database = self.databases[0] if self.databases else None
        if self.state.database:
            self.status = f"Connected to {self.state.database}"
            await self.load_tables()

    async def refresh(self) -> None:
        await self.load_databases()

    async def select_database(self, database: str) -> None:
        self.state.select_database(database)
        self.tables = []
        self.columns = []
        self.total = 0
        await self.load_tables()

    async def load_tables(self) -> None:
        if not self.state.database:
            return
        try:
            data = await self.client.list_tables(self.state.database)
        except GatewayError as e:
            logger.error("Error loading tables of %s: %s", self.state.database, e)
            self.status = "Error loading tables"
            return

        self.tables = [name for name in map(_table_name, data.get("tables", [])) if name]
        if not self.state.table and self.tables:
            await self.select_table(self.tables[0])

    async def select_table(self, table: str) -> None:
        self.state.select_table(table)
        await self.load_structure()
        await self.load_rows()

    async def load_structure(self) -> None:
        if not self.state.database or not self.state.table:
            return
        try:
            data = await self.client.get_structure(self.state.database, self.state.table)
        except GatewayError as e:
            logger.error("Error loading structure of %s: %s", self.state.table, e)
            return
        self.columns = data.get("columns", [])

    async def load_rows(self) -> None:
        if not self.state.database or not self.state.table:
            return
        try:
            data = await self.client.list_rows(
                self.state.database, self.state.table, self.state.limit, self.state.offset
            )
        except GatewayError as e:
            logger.error("Error loading rows of %s: %s", self.state.table, e)
            self.status = "Error loading rows"
            return

        self.state.set_rows(data.get("rows", []))
        self.total = data.get("total", 0)

    async def next_page(self) -> None:
        self.state.next_page()
        await self.load_rows()

    async def prev_page(self) -> None:
        self.state.prev_page()
        await self.load_rows()

    # ─────────────────────────────────────────────────────────────────────────
    # Derived View
    # ─────────────────────────────────────────────────────────────────────────

    def set_filter(self, text: str) -> None:
        self.state.filter = text

    def toggle_sort(self, column: str) -> None:
        self.state.toggle_sort(column)

    def visible_rows(self) -> List[RowEntry]:
        return self.state.visible_rows()

    @property
    def page(self) -> Optional[PageInfo]:
        if not self.state.rows:
            return None
        return page_info(self.state.offset, self.state.limit, self.total)

    @property
    def page_text(self) -> str:
        page = self.page
        return page.text if page else "No rows"

    # ─────────────────────────────────────────────────────────────────────────
    # Row Mutations
    # ─────────────────────────────────────────────────────────────────────────

    def stage_edit(self, key: int, column: str, value: Any) -> None:
        self.state.entry(key).edits[column] = value

    def _editable_entry(self, key: int, action: str) -> RowEntry:
        entry = self.state.entry(key)
        if not entry.has_id:
            raise MissingRowIdError(f"{action} assumes an 'id' primary key.")
        return entry

    async def save_row(self, key: int) -> Optional[Dict[str, Any]]:
        """
        Submit the edited columns of one row and reload the page.

        Columns that were not edited are left out of the update. Returns
        None without a request when nothing was changed.
        """
        entry = self._editable_entry(key, "Update")
        changes = entry.changes()
        if not changes:
            return None
        result = await self.client.update_row(self.state.database, self.state.table, entry.row_id, changes)
        await self.load_rows()
        return result

    async def delete_row(self, key: int) -> Dict[str, Any]:
        entry = self._editable_entry(key, "Delete")
        result = await self.client.delete_row(self.state.database, self.state.table, entry.row_id)
        await self.load_rows()
        return result

    async def insert_row(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.client.insert_row(self.state.database, self.state.table, data)
        await self.load_rows()
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # SQL Console
    # ─────────────────────────────────────────────────────────────────────────

    async def run_sql(self, sql: str) -> Optional[SqlOutcome]:
        """Run SQL in the selected database; errors are reported in the outcome."""
        sql = sql.strip()
        if not sql:
            return None
        try:
            result = await self.client.run_query(sql, self.state.database)
        except GatewayError as e:
            logger.error("SQL failed: %s", e)
            return SqlOutcome(error=e.message)

        rows = result.get("rows") or []
        if not rows:
            return SqlOutcome(message="Query executed (no rows).")
        return SqlOutcome(rows=rows, fields=result.get("fields") or list(rows[0]))
