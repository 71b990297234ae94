"""
Condition Operators.

============================================================
PURPOSE
============================================================
Translates (field, operator, value) conditions into SQLAlchemy
clauses, and normalises a conditions map into an ordered list of
such triples.

A conditions map is an ordered mapping:

    {"status": "active", "age": ("age", ">", 18)}

Scalar values mean equality. Triples (tuple or list of three)
carry their own field and operator. Entries keep mapping order.

============================================================
"""

from typing import Any, Callable, Dict, List, Mapping, Tuple

from sqlalchemy.sql.elements import ColumnElement

from repository.exceptions import ValidationError


Condition = Tuple[str, str, Any]


def _between(column, value):
    low, high = value
    return column.between(low, high)


OPERATORS: Dict[str, Callable[[Any, Any], ColumnElement]] = {
    "=": lambda c, v: c == v,
    "==": lambda c, v: c == v,
    "!=": lambda c, v: c != v,
    "<>": lambda c, v: c != v,
    ">": lambda c, v: c > v,
    ">=": lambda c, v: c >= v,
    "<": lambda c, v: c < v,
    "<=": lambda c, v: c <= v,
    "like": lambda c, v: c.like(v),
    "not like": lambda c, v: c.not_like(v),
    "ilike": lambda c, v: c.ilike(v),
    "not ilike": lambda c, v: c.not_ilike(v),
    "in": lambda c, v: c.in_(v),
    "not in": lambda c, v: c.not_in(v),
    "is": lambda c, v: c.is_(v),
    "is not": lambda c, v: c.is_not(v),
    "between": _between,
}


def normalize_operator(operator: str, source: str = "conditions") -> str:
    """
    Lower-case and collapse whitespace; reject unknown operators.

    Raises:
        ValidationError: If the operator is not supported
    """
    key = " ".join(str(operator).lower().split())
    if key not in OPERATORS:
        raise ValidationError(
            repository_name=source,
            operation="where",
            field=str(operator),
            reason=f"unsupported operator, expected one of {sorted(OPERATORS)}",
        )
    return key


def build_clause(column: Any, operator: str, value: Any, source: str = "conditions") -> ColumnElement:
    """Build a SQLAlchemy clause for `column <operator> value`."""
    return OPERATORS[normalize_operator(operator, source)](column, value)


def normalize_conditions(where: Mapping[str, Any], source: str = "conditions") -> List[Condition]:
    """
    Turn a conditions map into an ordered list of triples.

    Args:
        where: Mapping of field to scalar or (field, operator, value)
        source: Name used in error messages

    Returns:
        List of (field, operator, value) in mapping order

    Raises:
        ValidationError: If a list/tuple value is not a triple
    """
    conditions: List[Condition] = []
    for key, value in where.items():
        if isinstance(value, (tuple, list)):
            if len(value) != 3:
                raise ValidationError(
                    repository_name=source,
                    operation="where",
                    field=str(key),
                    reason="condition must be a scalar or a (field, operator, value) triple",
                )
            field, operator, val = value
            conditions.append((field, normalize_operator(operator, source), val))
        else:
            conditions.append((key, "=", value))
    return conditions
