"""
Backend-neutral filter clauses and their per-dialect compilation.

Query code builds an ordered list of clause objects; a compiler for the
active dialect turns each into a SQLAlchemy expression and the caller ANDs
them together. Clauses name model attributes by string so the same list can
be compiled against any mapped model that has those columns.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Sequence, Tuple, Type

from sqlalchemy import false, func, or_, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql.elements import ColumnElement


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class Contains:
    """The JSON document in ``field`` contains ``fragment``."""

    field: str
    fragment: Any


@dataclass(frozen=True)
class HasKey:
    """The JSON object in ``field`` has ``key`` as a top-level key."""

    field: str
    key: str


@dataclass(frozen=True)
class AnyElement:
    """The JSON array in ``field`` holds at least one of ``values``."""

    field: str
    values: Tuple[str, ...]


@dataclass(frozen=True)
class IsEmptyArray:
    """The JSON array in ``field`` is empty or absent."""

    field: str


@dataclass(frozen=True)
class Between:
    """``start <= field < end``."""

    field: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class After:
    """``field > moment``."""

    field: str
    moment: datetime


@dataclass(frozen=True)
class MatchNone:
    pass


Clause = Any


class PredicateCompiler:
    """Compiles clauses shared by every dialect; subclasses add the JSON ones."""

    def __init__(self, model: Type[Any]):
        self.model = model
        self._handlers: Dict[type, Callable[[Any], ColumnElement]] = {
            Equals: self.equals,
            Contains: self.contains,
            HasKey: self.has_key,
            AnyElement: self.any_element,
            IsEmptyArray: self.is_empty_array,
            Between: self.between,
            After: self.after,
            MatchNone: self.match_none,
        }

    def column(self, name: str):
        return getattr(self.model, name)

    def compile(self, clauses: Sequence[Clause]) -> List[ColumnElement]:
        compiled = []
        for clause in clauses:
            handler = self._handlers.get(type(clause))
            if handler is None:
                raise TypeError(f"Unsupported filter clause: {clause!r}")
            compiled.append(handler(clause))
        return compiled

    def equals(self, clause: Equals) -> ColumnElement:
        return self.column(clause.field) == clause.value

    def between(self, clause: Between) -> ColumnElement:
        column = self.column(clause.field)
        return (column >= clause.start) & (column < clause.end)

    def after(self, clause: After) -> ColumnElement:
        return self.column(clause.field) > clause.moment

    def match_none(self, clause: MatchNone) -> ColumnElement:
        return false()

    def contains(self, clause: Contains) -> ColumnElement:
        raise NotImplementedError

    def has_key(self, clause: HasKey) -> ColumnElement:
        raise NotImplementedError

    def any_element(self, clause: AnyElement) -> ColumnElement:
        raise NotImplementedError

    def is_empty_array(self, clause: IsEmptyArray) -> ColumnElement:
        raise NotImplementedError


class PostgresCompiler(PredicateCompiler):
    """JSONB operators: ``@>`` for containment and ``?`` for key existence."""

    def jsonb(self, name: str):
        return type_coerce(self.column(name), JSONB)

    def contains(self, clause: Contains) -> ColumnElement:
        return self.jsonb(clause.field).contains(clause.fragment)

    def has_key(self, clause: HasKey) -> ColumnElement:
        return self.jsonb(clause.field).has_key(clause.key)

    def any_element(self, clause: AnyElement) -> ColumnElement:
        if not clause.values:
            return false()
        return or_(*(self.jsonb(clause.field).contains([value]) for value in clause.values))

    def is_empty_array(self, clause: IsEmptyArray) -> ColumnElement:
        column = self.column(clause.field)
        return or_(column.is_(None), func.jsonb_array_length(self.jsonb(clause.field)) == 0)


class SQLiteCompiler(PredicateCompiler):
    """SQLite JSON1 functions plus ``json_contains``/``json_has_key``.

    The two helpers are registered on every connection by
    :class:`pipeline_dashboard.db.base.Database`.
    """

    def contains(self, clause: Contains) -> ColumnElement:
        fragment = json.dumps(clause.fragment)
        return func.json_contains(self.column(clause.field), fragment) == 1

    def has_key(self, clause: HasKey) -> ColumnElement:
        return func.json_has_key(self.column(clause.field), clause.key) == 1

    def any_element(self, clause: AnyElement) -> ColumnElement:
        if not clause.values:
            return false()
        column = self.column(clause.field)
        return or_(*(func.json_contains(column, json.dumps([value])) == 1 for value in clause.values))

    def is_empty_array(self, clause: IsEmptyArray) -> ColumnElement:
        column = self.column(clause.field)
        return or_(column.is_(None), func.json_array_length(column) == 0)


COMPILERS: Dict[str, Type[PredicateCompiler]] = {
    "postgresql": PostgresCompiler,
    "sqlite": SQLiteCompiler,
}


def compiler_for(dialect_name: str, model: Type[Any]) -> PredicateCompiler:
    """Return the clause compiler for a SQLAlchemy dialect name."""
    try:
        return COMPILERS[dialect_name](model)
    except KeyError:
        raise ValueError(f"Unsupported database dialect: {dialect_name}") from None
