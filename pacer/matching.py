"""Predicate matching for rulebook entries.

Predicates are Mongo-style documents keyed by dotted field paths::

    {"region": "EU", "price.amount": {"$gte": 100}, "$or": [{"tier": "gold"}, {"vip": True}]}

Field lookups never raise: a missing key, a ``None`` or scalar intermediate,
or an out-of-range index resolves to :data:`MISSING`, and a missing field
satisfies nothing except ``{"$exists": False}``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from pacer.errors import PredicateError


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

_LOGICAL = {"$and", "$or", "$nor"}
_FIELD_OPERATORS = {"$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin", "$exists", "$regex", "$options", "$not"}


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def resolve_path(record: Any, path: str) -> Any:
    """Follow a dotted path through mappings and sequences, returning ``MISSING`` on any miss."""
    current = record
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif _is_sequence(current) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


# --- Validation ---


def validate_predicate(predicate: Any) -> None:
    """Raise :class:`PredicateError` if ``predicate`` cannot be evaluated."""
    if not isinstance(predicate, Mapping):
        raise PredicateError(f"match must be an object, got {type(predicate).__name__}")

    for key, condition in predicate.items():
        if not isinstance(key, str) or not key:
            raise PredicateError(f"Invalid field path: {key!r}")
        if key in _LOGICAL:
            if not isinstance(condition, list) or not condition:
                raise PredicateError(f"{key} expects a non-empty list of match objects")
            for clause in condition:
                validate_predicate(clause)
        elif key.startswith("$"):
            raise PredicateError(f"Unknown top-level operator {key!r}")
        elif _is_operator_document(condition):
            _validate_operators(key, condition)


def _is_operator_document(condition: Any) -> bool:
    return (
        isinstance(condition, Mapping)
        and bool(condition)
        and all(isinstance(k, str) and k.startswith("$") for k in condition)
    )


def _validate_operators(path: str, operators: Mapping[str, Any]) -> None:
    for op, operand in operators.items():
        if op not in _FIELD_OPERATORS:
            raise PredicateError(f"Unknown operator {op!r} for field {path!r}")
        if op in ("$in", "$nin") and not isinstance(operand, list):
            raise PredicateError(f"{op} for field {path!r} expects a list")
        if op == "$exists" and not isinstance(operand, bool):
            raise PredicateError(f"$exists for field {path!r} expects true or false")
        if op == "$options" and "$regex" not in operators:
            raise PredicateError(f"$options for field {path!r} requires $regex")
        if op == "$regex":
            try:
                re.compile(operand, _regex_flags(operators.get("$options", "")))
            except (re.error, TypeError) as exc:
                raise PredicateError(f"Invalid $regex for field {path!r}: {exc}") from exc
        if op == "$not":
            if not _is_operator_document(operand):
                raise PredicateError(f"$not for field {path!r} expects an operator object")
            _validate_operators(path, operand)


def _regex_flags(options: str) -> int:
    flags = 0
    for char in options or "":
        if char == "i":
            flags |= re.IGNORECASE
        elif char == "m":
            flags |= re.MULTILINE
        elif char == "s":
            flags |= re.DOTALL
        elif char == "x":
            flags |= re.VERBOSE
        else:
            raise re.error(f"unsupported regex option {char!r}")
    return flags


# --- Evaluation ---


def matches(record: Any, predicate: Mapping[str, Any]) -> bool:
    """Return True if ``record`` satisfies every entry of ``predicate``."""
    for key, condition in predicate.items():
        if key == "$and":
            if not all(matches(record, clause) for clause in condition):
                return False
        elif key == "$or":
            if not any(matches(record, clause) for clause in condition):
                return False
        elif key == "$nor":
            if any(matches(record, clause) for clause in condition):
                return False
        else:
            value = resolve_path(record, key)
            if _is_operator_document(condition):
                if not _check_operators(value, condition):
                    return False
            elif not _equals(value, condition):
                return False
    return True


def _equals(value: Any, expected: Any) -> bool:
    if value is MISSING:
        return False
    if value == expected:
        return True
    # Array fields match when any element equals the expected scalar
    return _is_sequence(value) and not _is_sequence(expected) and expected in value


def _compare(value: Any, op: str, operand: Any) -> bool:
    if value is MISSING or value is None or operand is None:
        return False
    try:
        if op == "$gt":
            return value > operand
        if op == "$gte":
            return value >= operand
        if op == "$lt":
            return value < operand
        return value <= operand
    except TypeError:
        return False


def _check_operators(value: Any, operators: Mapping[str, Any]) -> bool:
    for op, operand in operators.items():
        if op == "$exists":
            if (value is not MISSING) != operand:
                return False
            continue
        if value is MISSING:
            return False
        if op == "$eq":
            ok = _equals(value, operand)
        elif op == "$ne":
            ok = not _equals(value, operand)
        elif op in ("$gt", "$gte", "$lt", "$lte"):
            ok = _compare(value, op, operand)
        elif op == "$in":
            ok = any(_equals(value, candidate) for candidate in operand)
        elif op == "$nin":
            ok = not any(_equals(value, candidate) for candidate in operand)
        elif op == "$regex":
            ok = isinstance(value, str) and (
                re.search(operand, value, _regex_flags(operators.get("$options", ""))) is not None
            )
        elif op == "$not":
            ok = not _check_operators(value, operand)
        else:
            # $options is consumed by $regex
            ok = True
        if not ok:
            return False
    return True


class RuleMatcher:
    """Callable wrapper so collaborators can depend on an injectable matcher."""

    def __call__(self, record: Any, predicate: Mapping[str, Any]) -> bool:
        return matches(record, predicate)

    validate = staticmethod(validate_predicate)
