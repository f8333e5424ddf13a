"""
MongoDB data source.

Maps a QuerySpec onto find() / count_documents():

    columns    -> projection {"field": 1, ...}; "_id" is excluded unless listed
    selection  -> filter dict, ANDed with filters added by where(...) operations
    order_by   -> sort list [("field", 1), ...]
    limit      -> skip/limit around every count and window fetch

Dotted columns ("metadata.device_id") read nested fields and "<path> <alias>"
names a column by its alias. ObjectIds are
returned as hex strings; pass a column schema (lazyrows.schema types) to fix the
Arrow type of each column across windows.

GROUP BY / HAVING are not expressible as find() queries and are rejected.
"""

import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pyarrow as pa
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from lazyrows.errors import QueryExecutionError
from lazyrows.query.spec import (
    Operation,
    QuerySpec,
    derive_column_names,
    parse_limit,
    split_column,
)
from lazyrows.rows import ArrowRowSet
from lazyrows.schema import Schema, infer_value, to_arrow_schema
from lazyrows.sources.base import BoundQuery, DataSource, window_bounds

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class MongoQueryBuilder:
    """Collection and fixed filters shaped by spec operations."""

    collection: Optional[str] = None
    filters: List[Dict[str, Any]] = field(default_factory=list)

    def use_collection(self, name: str) -> None:
        self.collection = name

    def add_filter(self, filter_dict: Dict[str, Any]) -> None:
        self.filters.append(filter_dict)


def use_collection(name: str) -> Operation:
    """Operation selecting the collection to query within a database."""

    def apply(builder: MongoQueryBuilder) -> None:
        builder.use_collection(name)

    apply.__qualname__ = f"use_collection({name!r})"
    return apply


def where(filter_dict: Dict[str, Any]) -> Operation:
    """Operation adding a fixed filter ANDed with the selection."""

    def apply(builder: MongoQueryBuilder) -> None:
        builder.add_filter(filter_dict)

    apply.__qualname__ = f"where({sorted(filter_dict)!r})"
    return apply


def _resolve_path(document: Dict[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class MongoDataSource(DataSource):
    """
    Data source over a pymongo collection.

    Args:
        database: Database whose collection is chosen by a use_collection()
            operation
        collection: Collection to query directly
        schema: Optional column types, keyed by column name

    Example:
        >>> source = MongoDataSource(collection=client.db.readings)
        >>> spec = QuerySpec(
        ...     columns=("sensor_id", "value"),
        ...     selection={"value": {"$gt": 100}},
        ...     order_by=[("timestamp", 1)],
        ... )
    """

    def __init__(
        self,
        database: Optional[Database] = None,
        collection: Optional[Collection] = None,
        schema: Optional[Schema] = None,
    ):
        super().__init__()
        if database is None and collection is None:
            raise ValueError("Either database or collection is required")
        self._database = database
        self._collection = collection
        self._schema = dict(schema) if schema is not None else None
        # Key order found by query_column_names() for queries without a projection
        self._discovered: "weakref.WeakKeyDictionary[MongoQueryBuilder, List[str]]" = (
            weakref.WeakKeyDictionary()
        )

    def new_builder(self) -> MongoQueryBuilder:
        return MongoQueryBuilder()

    def validate(self, spec: QuerySpec) -> None:
        if spec.group_by or spec.having:
            raise ValueError("MongoDataSource does not support group_by/having")
        if spec.selection is not None and not isinstance(spec.selection, dict):
            raise ValueError(
                f"MongoDB selection must be a filter dict, got {type(spec.selection).__name__}"
            )

    def _get_collection(self, query: BoundQuery) -> Collection:
        name = query.builder.collection
        if name is not None:
            if self._database is None:
                raise ValueError(
                    f"use_collection({name!r}) requires a database, not a collection"
                )
            return self._database[name]
        if self._collection is None:
            raise ValueError("No collection; add a use_collection(...) operation")
        return self._collection

    def build_filter(self, query: BoundQuery) -> Dict[str, Any]:
        filters = [f for f in query.builder.filters if f]
        if query.spec.selection:
            filters.append(query.spec.selection)
        if not filters:
            return {}
        if len(filters) == 1:
            return dict(filters[0])
        return {"$and": filters}

    def build_projection(self, query: BoundQuery) -> Optional[Dict[str, int]]:
        if query.spec.columns is None:
            return None
        projection = {split_column(each)[0]: 1 for each in query.spec.columns}
        if "_id" not in projection:
            projection["_id"] = 0
        return projection

    def query_column_names(self, query: BoundQuery) -> List[str]:
        """
        Column names of a query.

        Projected columns name themselves. Without a projection the schema
        keys are used, or else the keys of the first matching document.

        Raises:
            QueryExecutionError: If the sample document cannot be read
        """
        names = derive_column_names(query.spec.columns)
        if names is not None:
            return names
        if self._schema is not None:
            return list(self._schema)

        collection = self._get_collection(query)
        bounds = query.spec.limit_bounds()
        skip = bounds[0] if bounds is not None else 0
        try:
            document = collection.find_one(
                self.build_filter(query),
                sort=query.spec.order_by or None,
                skip=skip,
            )
        except PyMongoError as e:
            raise QueryExecutionError(f"MongoDB column lookup failed: {e}") from e

        names = list(document) if document else []
        self._discovered[query.builder] = names
        logger.debug("Discovered columns %s", names)
        return names

    def _columns(self, query: BoundQuery) -> List[Tuple[str, str]]:
        """(document path, column name) pairs of a query."""
        if query.spec.columns is not None:
            return [split_column(each) for each in query.spec.columns]
        if self._schema is not None:
            names = list(self._schema)
        else:
            names = self._discovered.get(query.builder)
            if names is None:
                names = self.query_column_names(query)
        return [(name, name) for name in names]

    def documents_to_table(
        self, query: BoundQuery, documents: List[Dict[str, Any]]
    ) -> pa.Table:
        columns = self._columns(query)
        names = [name for _, name in columns]
        types = [self._schema.get(name) if self._schema else None for name in names]

        arrays = []
        for (path, _), column_type in zip(columns, types):
            raw = [_resolve_path(doc, path) for doc in documents]
            if column_type is not None:
                arrays.append(
                    pa.array([column_type.convert(v) for v in raw], type=column_type.to_arrow())
                )
            elif documents:
                arrays.append(pa.array([infer_value(v) for v in raw]))
            else:
                arrays.append(pa.array([], type=pa.null()))

        typed = all(t is not None for t in types)
        if names and typed and len(set(names)) == len(names):
            return pa.Table.from_arrays(
                arrays, schema=to_arrow_schema(dict(zip(names, types)))
            )
        return pa.Table.from_arrays(arrays, names=names)
