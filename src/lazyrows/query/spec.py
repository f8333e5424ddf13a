"""
Query specification shared by a cursor and all of its windows.

A QuerySpec describes one logical query in source-neutral terms. How each
field is interpreted depends on the data source it is bound to:

    field            SQLite                 MongoDB              Arrow
    ---------------  ---------------------  -------------------  ------------------
    columns          SELECT list            projection           column selection
    selection        WHERE clause (str)     filter (dict)        compute expression
    selection_args   ? bindings             unused               unused
    group_by/having  GROUP BY / HAVING      rejected             rejected
    order_by         ORDER BY (str)         sort list            [(col, order)]
    limit            "offset,length" or "length", applied by every source

operations are callables applied once, in order, to the source specific query
builder when the spec is bound (e.g. choosing tables or a collection).
"""

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

Operation = Callable[[Any], None]


@dataclass(frozen=True)
class QuerySpec:
    """
    Immutable description of a query.

    Attributes:
        columns: Projected column expressions; "<expr> <alias>" names a column
            by its alias. None selects every column.
        selection: Filter predicate
        selection_args: Arguments bound into the predicate
        group_by: Grouping clause
        having: Group filter clause
        order_by: Sort order
        limit: Optional absolute row limit, "offset,length" or "length"
        operations: Builder operations applied once when bound to a source
    """

    columns: Optional[Tuple[str, ...]] = None
    selection: Any = None
    selection_args: Tuple[Any, ...] = ()
    group_by: Optional[str] = None
    having: Optional[str] = None
    order_by: Any = None
    limit: Optional[str] = None
    operations: Tuple[Operation, ...] = ()

    def __post_init__(self):
        # Frozen dataclass: normalise through object.__setattr__
        if self.columns is not None:
            object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "selection_args", tuple(self.selection_args or ()))
        object.__setattr__(self, "operations", tuple(self.operations or ()))
        if isinstance(self.selection, (dict, list)):
            object.__setattr__(self, "selection", deepcopy(self.selection))
        if self.limit is not None:
            parse_limit(self.limit)

    @property
    def column_list(self) -> Optional[List[str]]:
        return list(self.columns) if self.columns is not None else None

    def limit_bounds(self) -> Optional[Tuple[int, int]]:
        """Parsed limit as (offset, length), or None when unlimited."""
        if self.limit is None:
            return None
        return parse_limit(self.limit)


def parse_limit(limit: str) -> Tuple[int, int]:
    """
    Parse a limit clause.

    Args:
        limit: "offset,length" or "length"

    Returns:
        Tuple of (offset, length)

    Raises:
        ValueError: If the clause is malformed or negative

    Example:
        >>> parse_limit("20,10")
        (20, 10)
        >>> parse_limit("5")
        (0, 5)
    """
    parts = [part.strip() for part in str(limit).split(",")]
    if len(parts) > 2 or not all(part.isdigit() for part in parts):
        raise ValueError(
            f"Invalid limit {limit!r}: expected 'offset,length' or 'length'"
        )
    if len(parts) == 1:
        return 0, int(parts[0])
    return int(parts[0]), int(parts[1])


def format_limit(offset: int, length: int) -> str:
    return f"{offset},{length}"


def derive_column_names(columns: Optional[Sequence[str]]) -> Optional[List[str]]:
    """
    Derive result column names from projection expressions.

    The text after the last space is the name (the alias); an expression with
    no space is its own name.

    Example:
        >>> derive_column_names(["id", "COUNT(*) total", "a.name AS label"])
        ['id', 'total', 'label']
    """
    if columns is None:
        return None

    names = []
    for each in columns:
        pos = each.rfind(" ")
        names.append(each if pos < 0 else each[pos + 1 :])
    return names


def split_column(expression: str) -> Tuple[str, str]:
    """
    Split a projection expression into (source expression, column name).

    The name is the text after the last space, as in derive_column_names(). A
    trailing "AS" keyword is dropped from the source expression.

    Example:
        >>> split_column("metadata.device device")
        ('metadata.device', 'device')
        >>> split_column("value AS reading")
        ('value', 'reading')
        >>> split_column("value")
        ('value', 'value')
    """
    pos = expression.rfind(" ")
    if pos < 0:
        return expression, expression
    source = expression[:pos].strip()
    if source[-3:].upper() == " AS":
        source = source[:-3].rstrip()
    return source, expression[pos + 1 :]
