"""Admin console: view state and a gateway client for scripts and tests."""

from console.client import GatewayClient, GatewayError
from console.session import ConsoleSession, MissingRowIdError, SqlOutcome
from console.view import ViewState, RowEntry, compare_values, filter_rows, sort_rows, page_info

__all__ = [
    "GatewayClient",
    "GatewayError",
    "ConsoleSession",
    "MissingRowIdError",
    "SqlOutcome",
    "ViewState",
    "RowEntry",
    "compare_values",
    "filter_rows",
    "sort_rows",
    "page_info",
]
