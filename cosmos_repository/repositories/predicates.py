"""
Entity-field predicates for repository queries.

Predicates are built from field references with Python operators and
compile to a parameterized Cosmos DB SQL query. Values are always sent as
query parameters, never interpolated into the SQL text.

Key features:
- Comparison operators on fields: ==, !=, <, <=, >, >=
- Boolean composition: & (AND), | (OR), ~ (NOT)
- Membership and string helpers: is_in, contains, startswith, is_defined
- Nested paths with dotted names ("address.city")
- Client-side evaluation (matches) following Cosmos DB undefined semantics
- raw() escape hatch for hand-written SQL clauses

Example:
    >>> predicate = (field("category") == "books") & (field("price") < 20)
    >>> predicate.to_query()
    ('SELECT * FROM c WHERE ((c["category"] = @p0) AND (c["price"] < @p1))',
     [{'name': '@p0', 'value': 'books'}, {'name': '@p1', 'value': 20}])
"""

import json
import operator
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from cosmos_repository.core.exceptions import OperationNotSupportedError

# Alias the query uses for the collection's documents
ROOT_ALIAS = "c"

_PARAMETER_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class _Missing:
    """Marker for a path that is not present in a document (SQL undefined)."""

    def __repr__(self) -> str:
        return "<undefined>"


MISSING = _Missing()


class QueryParameters:
    """
    Collects query parameters while a predicate tree is compiled.

    Attributes:
        parameters: Parameters in the shape query_items() expects
    """

    def __init__(self):
        self.parameters: List[Dict[str, Any]] = []
        self._names: set = set()

    def add(self, value: Any) -> str:
        """Register a positional value and return its generated name."""
        name = f"@p{len(self.parameters)}"
        while name in self._names:
            name = f"{name}_"
        return self._register(name, value)

    def add_named(self, name: str, value: Any) -> str:
        """Register a caller-named value (used by raw clauses)."""
        name = name if name.startswith("@") else f"@{name}"
        if name in self._names:
            raise ValueError(f"Duplicate query parameter {name}")
        return self._register(name, value)

    def _register(self, name: str, value: Any) -> str:
        self._names.add(name)
        self.parameters.append({"name": name, "value": value})
        return name


def _kind(value: Any) -> Optional[str]:
    """Cosmos DB type family of a JSON value, used for comparison rules."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return None


def _and(values: Iterable[Optional[bool]]) -> Optional[bool]:
    result: Optional[bool] = True
    for value in values:
        if value is False:
            return False
        if value is None:
            result = None
    return result


def _or(values: Iterable[Optional[bool]]) -> Optional[bool]:
    result: Optional[bool] = False
    for value in values:
        if value is True:
            return True
        if value is None:
            result = None
    return result


class Predicate(ABC):
    """
    Boolean expression over entity fields.

    Subclasses implement ``compile`` (SQL fragment) and ``evaluate``
    (three-valued client-side result: True, False, or None for undefined).
    """

    @abstractmethod
    def compile(self, params: QueryParameters) -> str:
        """Compile to a SQL boolean expression, registering values in ``params``."""

    @abstractmethod
    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        """Evaluate against a document; None means undefined."""

    def matches(self, document: Dict[str, Any]) -> bool:
        """
        Check whether a document satisfies the predicate.

        Mirrors the server: only a definite True selects the document.
        """
        return self.evaluate(document) is True

    def to_query(self) -> Tuple[str, List[Dict[str, Any]]]:
        """
        Build the full query for this predicate.

        Returns:
            Tuple of (SQL text, parameters list)
        """
        params = QueryParameters()
        clause = self.compile(params)
        return f"SELECT * FROM {ROOT_ALIAS} WHERE {clause}", params.parameters

    def __and__(self, other: "Predicate") -> "Predicate":
        return And(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return Or(self, other)

    def __invert__(self) -> "Predicate":
        return Not(self)

    def __bool__(self) -> bool:
        raise TypeError(
            "Predicates cannot be used as Python booleans; "
            "combine them with &, | and ~ instead of and/or/not"
        )


class FieldRef:
    """
    Reference to a (possibly nested) entity field.

    Created via ``field("name")``; comparison operators return predicates.

    Attributes:
        path: Tuple of property names from the document root
    """

    __hash__ = None  # __eq__ builds predicates

    def __init__(self, path: Tuple[str, ...]):
        if not path or any(not part for part in path):
            raise ValueError("Field path cannot be empty")
        self.path = path

    @property
    def sql(self) -> str:
        """SQL accessor, e.g. c["address"]["city"]."""
        return ROOT_ALIAS + "".join(f"[{json.dumps(part)}]" for part in self.path)

    def resolve(self, document: Dict[str, Any]) -> Any:
        """Return the value at this path, or MISSING if any segment is absent."""
        current: Any = document
        for part in self.path:
            if not isinstance(current, dict) or part not in current:
                return MISSING
            current = current[part]
        return current

    def __eq__(self, value: Any) -> "Predicate":  # type: ignore[override]
        return Comparison(self, "=", value)

    def __ne__(self, value: Any) -> "Predicate":  # type: ignore[override]
        return Comparison(self, "!=", value)

    def __lt__(self, value: Any) -> "Predicate":
        return Comparison(self, "<", value)

    def __le__(self, value: Any) -> "Predicate":
        return Comparison(self, "<=", value)

    def __gt__(self, value: Any) -> "Predicate":
        return Comparison(self, ">", value)

    def __ge__(self, value: Any) -> "Predicate":
        return Comparison(self, ">=", value)

    def is_in(self, values: Iterable[Any]) -> "Predicate":
        return In(self, list(values))

    def contains(self, substring: str) -> "Predicate":
        return StringFunction(self, "CONTAINS", substring)

    def startswith(self, prefix: str) -> "Predicate":
        return StringFunction(self, "STARTSWITH", prefix)

    def is_defined(self) -> "Predicate":
        return IsDefined(self)

    def __repr__(self) -> str:
        return f"field({'.'.join(self.path)!r})"


def field(name: str) -> FieldRef:
    """
    Reference an entity field by name.

    Args:
        name: Property name; dots separate nested properties ("address.city")

    Returns:
        FieldRef usable with comparison operators
    """
    return FieldRef(tuple(name.split(".")))


_ORDERING: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


class Comparison(Predicate):
    """field <op> value"""

    def __init__(self, ref: FieldRef, op: str, value: Any):
        self.ref = ref
        self.op = op
        self.value = value

    def compile(self, params: QueryParameters) -> str:
        return f"({self.ref.sql} {self.op} {params.add(self.value)})"

    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        actual = self.ref.resolve(document)
        if actual is MISSING:
            return None

        kind = _kind(actual)
        if kind is None or kind != _kind(self.value):
            return None

        if self.op == "=":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value
        if kind not in ("number", "string", "boolean"):
            return None
        return _ORDERING[self.op](actual, self.value)


class In(Predicate):
    """field IN (values...)"""

    def __init__(self, ref: FieldRef, values: List[Any]):
        self.ref = ref
        self.values = values

    def compile(self, params: QueryParameters) -> str:
        if not self.values:
            return "false"
        names = ", ".join(params.add(value) for value in self.values)
        return f"({self.ref.sql} IN ({names}))"

    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        actual = self.ref.resolve(document)
        if actual is MISSING:
            return None
        kind = _kind(actual)
        return any(
            _kind(candidate) == kind and candidate == actual
            for candidate in self.values
        )


class StringFunction(Predicate):
    """CONTAINS / STARTSWITH over a string field"""

    def __init__(self, ref: FieldRef, function: str, argument: str):
        if not isinstance(argument, str):
            raise TypeError(f"{function} expects a string argument, got {type(argument).__name__}")
        self.ref = ref
        self.function = function
        self.argument = argument

    def compile(self, params: QueryParameters) -> str:
        return f"{self.function}({self.ref.sql}, {params.add(self.argument)})"

    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        actual = self.ref.resolve(document)
        if not isinstance(actual, str):
            return None
        if self.function == "CONTAINS":
            return self.argument in actual
        return actual.startswith(self.argument)


class IsDefined(Predicate):
    """IS_DEFINED(field)"""

    def __init__(self, ref: FieldRef):
        self.ref = ref

    def compile(self, params: QueryParameters) -> str:
        return f"IS_DEFINED({self.ref.sql})"

    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        return self.ref.resolve(document) is not MISSING


class And(Predicate):
    def __init__(self, *operands: Predicate):
        self.operands = operands

    def compile(self, params: QueryParameters) -> str:
        return "(" + " AND ".join(operand.compile(params) for operand in self.operands) + ")"

    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        return _and(operand.evaluate(document) for operand in self.operands)


class Or(Predicate):
    def __init__(self, *operands: Predicate):
        self.operands = operands

    def compile(self, params: QueryParameters) -> str:
        return "(" + " OR ".join(operand.compile(params) for operand in self.operands) + ")"

    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        return _or(operand.evaluate(document) for operand in self.operands)


class Not(Predicate):
    def __init__(self, operand: Predicate):
        self.operand = operand

    def compile(self, params: QueryParameters) -> str:
        return f"(NOT {self.operand.compile(params)})"

    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        result = self.operand.evaluate(document)
        return None if result is None else not result


class RawPredicate(Predicate):
    """
    Hand-written SQL boolean clause with named parameters.

    The clause must reference documents through the ``c`` alias and its
    parameters with ``@name``. Raw clauses cannot be evaluated client-side.
    """

    def __init__(self, clause: str, parameters: Dict[str, Any]):
        if not clause or not clause.strip():
            raise ValueError("Raw clause cannot be empty")
        for name in parameters:
            if not _PARAMETER_NAME.match(name.lstrip("@")):
                raise ValueError(f"Invalid query parameter name {name!r}")
        self.clause = clause
        self.parameters = parameters

    def compile(self, params: QueryParameters) -> str:
        for name, value in self.parameters.items():
            params.add_named(name, value)
        return f"({self.clause})"

    def evaluate(self, document: Dict[str, Any]) -> Optional[bool]:
        raise OperationNotSupportedError(
            "RawPredicate.evaluate", "raw SQL clauses are only evaluated by the server"
        )


def raw(clause: str, **parameters: Any) -> Predicate:
    """
    Build a predicate from a SQL clause.

    Example:
        >>> raw("ARRAY_CONTAINS(c.tags, @tag)", tag="sale")
    """
    return RawPredicate(clause, parameters)
