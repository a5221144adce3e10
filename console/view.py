# view.py
"""
Client-side view state of the admin console.

Sorting and filtering work on the page that was last fetched and never
trigger a request. Rows are wrapped in entries with a stable key so an
edit is always submitted for the row it was made on.
"""

import functools
import math
import re
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")

SortDirection = Literal["asc", "desc"]

# Leading numeric prefix, the way a browser's parseFloat reads it
NUMBER_PREFIX = re.compile(r"^\s*[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

ID_COLUMN = "id"


def parse_number(value: Any) -> Optional[float]:
    """Return the numeric reading of ``value``, or None when it has none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)
    match = NUMBER_PREFIX.match(str(value))
    if not match:
        return None
    return float(match.group(0).strip().replace("Infinity", "inf"))


def display_value(value: Any) -> str:
    return "" if value is None else str(value)


def compare_values(a: Any, b: Any) -> int:
    """Numeric comparison when both values parse as numbers, else case-insensitive text."""
    na, nb = parse_number(a), parse_number(b)
    if na is not None and nb is not None:
        left, right = na, nb
    else:
        left, right = display_value(a).lower(), display_value(b).lower()
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def _identity(row: Any) -> Any:
    return row


def sort_rows(
    rows: Sequence[T],
    column: str,
    direction: SortDirection = "asc",
    row_of: Callable[[T], Mapping[str, Any]] = _identity,
) -> List[T]:
    """Stable sort of ``rows`` by one column."""
    key = functools.cmp_to_key(lambda a, b: compare_values(row_of(a).get(column), row_of(b).get(column)))
    return sorted(rows, key=key, reverse=direction == "desc")


def filter_rows(
    rows: Sequence[T],
    text: str,
    row_of: Callable[[T], Mapping[str, Any]] = _identity,
) -> List[T]:
    """Keep the rows where any column value contains ``text``, ignoring case."""
    needle = text.strip().lower()
    if not needle:
        return list(rows)
    return [
        row for row in rows
        if any(needle in display_value(value).lower() for value in row_of(row).values())
    ]


class PageInfo(BaseModel):
    page: int
    pages: int
    total: int

    @property
    def text(self) -> str:
        return f"Page {self.page} / {self.pages} · {self.total} rows"


def page_info(offset: int, limit: int, total: int) -> PageInfo:
    return PageInfo(
        page=offset // limit + 1,
        pages=max(1, math.ceil(total / limit)),
        total=total,
    )


# ─────────────────────────────────────────────────────────────────────────────
# View State
# ─────────────────────────────────────────────────────────────────────────────

class RowEntry(BaseModel):
    """A fetched row, its stable key on the page, and the edits staged on it."""
    key: int
    original: Dict[str, Any]
    edits: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_id(self) -> bool:
        return self.original.get(ID_COLUMN) is not None

    @property
    def row_id(self) -> Any:
        return self.original.get(ID_COLUMN)

    def changes(self) -> Dict[str, Any]:
        """The staged edits that differ from the fetched values."""
        return {
            column: value for column, value in self.edits.items()
            if column not in self.original or self.original[column] != value
        }


class SortState(BaseModel):
    column: Optional[str] = None
    direction: SortDirection = "asc"


class ViewState(BaseModel):
    database: Optional[str] = None
    table: Optional[str] = None
    limit: int = Field(default=50, ge=1)
    offset: int = 0
    rows: List[RowEntry] = Field(default_factory=list)
    sort: SortState = Field(default_factory=SortState)
    filter: str = ""

    def _reset_view(self) -> None:
        self.offset = 0
        self.rows = []
        self.sort = SortState()
        self.filter = ""

    def select_database(self, database: str) -> None:
        self.database = database
        self.table = None
        self._reset_view()

    def select_table(self, table: str) -> None:
        self.table = table
        self._reset_view()

    def set_rows(self, rows: Sequence[Mapping[str, Any]]) -> None:
        self.rows = [RowEntry(key=i, original=dict(row)) for i, row in enumerate(rows)]

    def entry(self, key: int) -> RowEntry:
        for entry in self.rows:
            if entry.key == key:
                return entry
        raise KeyError(f"No row with key {key} on the current page")

    def toggle_sort(self, column: str) -> None:
        if self.sort.column == column:
            self.sort.direction = "desc" if self.sort.direction == "asc" else "asc"
        else:
            self.sort = SortState(column=column, direction="asc")

    def next_page(self) -> None:
        self.offset += self.limit

    def prev_page(self) -> None:
        self.offset = max(0, self.offset - self.limit)

    def visible_rows(self) -> List[RowEntry]:
        """The cached page, filtered then sorted."""
        rows = filter_rows(self.rows, self.filter, row_of=lambda e: e.original)
        if self.sort.column:
            rows = sort_rows(rows, self.sort.column, self.sort.direction, row_of=lambda e: e.original)
        return rows
