"""
Query specification layer for lazyrows.

- QuerySpec: immutable, source-neutral description of a query
- parse_limit / derive_column_names / split_column: clause helpers used by data sources
- hash_query: deterministic fingerprint of a QuerySpec
"""

from .fingerprint import hash_query
from .spec import (
    Operation,
    QuerySpec,
    derive_column_names,
    format_limit,
    parse_limit,
    split_column,
)

__all__ = [
    "Operation",
    "QuerySpec",
    "derive_column_names",
    "format_limit",
    "hash_query",
    "parse_limit",
    "split_column",
]
