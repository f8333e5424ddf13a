"""
Deterministic fingerprints for query specifications.

Creates an MD5 hash from the parts of a QuerySpec that define its result
(columns, selection, arguments, grouping, sort, limit):

- Normalizes datetimes to ISO format, ObjectIds to strings
- Recursively sorts dicts for determinism
- Same query always produces same hash

Operations are callables and are identified by their qualified name only.

Usage:
    fingerprint = hash_query(QuerySpec(selection={"status": "active"}))
    logger.debug("[%s] fetching window", fingerprint[:8])
"""

import hashlib
import json
from datetime import datetime
from typing import Any

from bson import ObjectId

from lazyrows.query.spec import QuerySpec


def _normalize_value(obj: Any) -> Any:
    """
    Recursively normalize query values for deterministic hashing.

    Converts datetimes to ISO strings, ObjectIds to strings,
    and sorts dict keys to ensure same query always hashes identically.
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, ObjectId):
        return str(obj)
    elif isinstance(obj, bytes):
        return obj.hex()
    elif isinstance(obj, dict):
        return {str(k): _normalize_value(v) for k, v in sorted(obj.items())}
    elif isinstance(obj, (list, tuple)):
        return [_normalize_value(v) for v in obj]
    elif obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    # pyarrow expressions and other opaque predicates
    return repr(obj)


def _operation_name(op: Any) -> str:
    return getattr(op, "__qualname__", None) or repr(op)


def hash_query(spec: QuerySpec) -> str:
    """
    Create deterministic hash of a query specification.

    Args:
        spec: Query to fingerprint

    Returns:
        Hex string hash (32 characters)

    Example:
        >>> hash_query(QuerySpec(selection={"a": 1})) == hash_query(QuerySpec(selection={"a": 1}))
        True
    """
    query_repr = {
        "columns": _normalize_value(spec.columns),
        "selection": _normalize_value(spec.selection),
    }

    if spec.selection_args:
        query_repr["selection_args"] = _normalize_value(spec.selection_args)
    if spec.group_by:
        query_repr["group_by"] = spec.group_by
    if spec.having:
        query_repr["having"] = spec.having
    if spec.order_by:
        query_repr["order_by"] = _normalize_value(spec.order_by)
    if spec.limit is not None:
        query_repr["limit"] = spec.limit
    if spec.operations:
        query_repr["operations"] = [_operation_name(op) for op in spec.operations]

    # Create deterministic JSON (sorted keys)
    json_str = json.dumps(query_repr, sort_keys=True, separators=(",", ":"))

    return hashlib.md5(json_str.encode("utf-8")).hexdigest()
