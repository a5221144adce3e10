# utils/__init__.py
"""Shared utilities for the gateway API."""

from utils.encoding import encode_rows
from utils.validation import require_database, strip_dict_keys, adapt_row_values

__all__ = ["encode_rows", "require_database", "strip_dict_keys", "adapt_row_values"]
