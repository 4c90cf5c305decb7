"""
Backend-neutral row filters.

Every gateway backend understands the same small predicate language:
``eq``, ``neq``, ``in_``, ``is_null``, ``gte``, ``lt`` and the ``or_`` / ``and_``
combinators. The Supabase backend renders them as PostgREST filter strings,
the SQL backend as SQLAlchemy expressions, and the local realtime hub
evaluates ``Eq`` against change payloads directly.
"""
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Eq:
    column: str
    value: Any

    def matches(self, row: dict) -> bool:
        return row.get(self.column) == self.value

    def to_postgrest(self) -> str:
        return f"{self.column}.eq.{self.value}"

    def to_realtime(self) -> str:
        return f"{self.column}=eq.{self.value}"


@dataclass(frozen=True)
class Neq:
    column: str
    value: Any

    def matches(self, row: dict) -> bool:
        return row.get(self.column) != self.value

    def to_postgrest(self) -> str:
        return f"{self.column}.neq.{self.value}"


@dataclass(frozen=True)
class In:
    column: str
    values: tuple

    def matches(self, row: dict) -> bool:
        return row.get(self.column) in self.values

    def to_postgrest(self) -> str:
        return f"{self.column}.in.({','.join(str(v) for v in self.values)})"


@dataclass(frozen=True)
class IsNull:
    column: str

    def matches(self, row: dict) -> bool:
        return row.get(self.column) is None

    def to_postgrest(self) -> str:
        return f"{self.column}.is.null"


@dataclass(frozen=True)
class Gte:
    column: str
    value: Any

    def matches(self, row: dict) -> bool:
        current = row.get(self.column)
        return current is not None and current >= self.value

    def to_postgrest(self) -> str:
        return f"{self.column}.gte.{_literal(self.value)}"


@dataclass(frozen=True)
class Lt:
    column: str
    value: Any

    def matches(self, row: dict) -> bool:
        current = row.get(self.column)
        return current is not None and current < self.value

    def to_postgrest(self) -> str:
        return f"{self.column}.lt.{_literal(self.value)}"


@dataclass(frozen=True)
class Or:
    clauses: tuple

    def matches(self, row: dict) -> bool:
        return any(c.matches(row) for c in self.clauses)

    def to_postgrest(self) -> str:
        return f"or({','.join(c.to_postgrest() for c in self.clauses)})"

    def to_postgrest_group(self) -> str:
        # Top-level .or_() takes the inner list without the or(...) wrapper
        return ",".join(c.to_postgrest() for c in self.clauses)


@dataclass(frozen=True)
class And:
    clauses: tuple

    def matches(self, row: dict) -> bool:
        return all(c.matches(row) for c in self.clauses)

    def to_postgrest(self) -> str:
        return f"and({','.join(c.to_postgrest() for c in self.clauses)})"


def _literal(value: Any) -> str:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


# --------------------------------------------------
# Constructors (read like the PostgREST builder)
# --------------------------------------------------
def eq(column: str, value: Any) -> Eq:
    return Eq(column, value)


def neq(column: str, value: Any) -> Neq:
    return Neq(column, value)


def in_(column: str, values) -> In:
    return In(column, tuple(values))


def is_null(column: str) -> IsNull:
    return IsNull(column)


def gte(column: str, value: Any) -> Gte:
    return Gte(column, value)


def lt(column: str, value: Any) -> Lt:
    return Lt(column, value)


def or_(*clauses) -> Or:
    return Or(tuple(clauses))


def and_(*clauses) -> And:
    return And(tuple(clauses))


def involving(user_id: str, first: str = "user1_id", second: str = "user2_id") -> Or:
    """Rows where ``user_id`` is on either side of a two-party relation."""
    return or_(eq(first, user_id), eq(second, user_id))


def between(a: str, b: str, first: str = "user1_id", second: str = "user2_id") -> Or:
    """Rows linking exactly ``a`` and ``b``, in either direction."""
    return or_(
        and_(eq(first, a), eq(second, b)),
        and_(eq(first, b), eq(second, a)),
    )
