"""Filter predicates built from a :class:`SelectionState`.

A predicate is a small tree of tagged variants:

* :class:`Empty` -- matches every row (no field is filtering)
* :class:`Equals` -- the field equals one level
* :class:`In` -- the field is one of several levels
* :class:`And` -- both sub-predicates hold

Every node can be evaluated against a single row (a mapping of field
name to value) and compiled to a polars expression, so the same tree is
used to filter a LazyFrame and to check the filter in tests.  Nodes also
render themselves as polars code and SQL for the code panel.

Null levels are matched with ``is_null()`` / ``IS NULL`` because a
plain comparison against null never holds in polars or SQL.
"""

import datetime
from collections.abc import Mapping
from dataclasses import dataclass
from functools import reduce
from typing import Any

import polars as pl

from reflex_pivot_table.selection import SelectionState


def _quote_ident(name: str) -> str:
    """Quote a column name for SQL (double quotes, doubled when embedded)."""
    return '"' + name.replace('"', '""') + '"'


def _sql_literal(value: Any) -> str:
    """Render a level as a SQL literal."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (datetime.date, datetime.datetime, datetime.time)):
        return f"'{value.isoformat()}'"
    return "'" + str(value).replace("'", "''") + "'"


class Predicate:
    """Base class of the predicate tree."""

    def evaluate(self, row: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def to_expr(self) -> pl.Expr:
        raise NotImplementedError

    def to_code(self) -> str:
        raise NotImplementedError

    def to_sql(self) -> str:
        raise NotImplementedError

    def atoms(self) -> list["Predicate"]:
        """Leaf predicates in left-to-right order."""
        return [self]

    @property
    def is_empty(self) -> bool:
        return False


@dataclass(frozen=True)
class Empty(Predicate):
    """Matches all rows."""

    def evaluate(self, row: Mapping[str, Any]) -> bool:
        return True

    def to_expr(self) -> pl.Expr:
        return pl.lit(True)

    def to_code(self) -> str:
        return ""

    def to_sql(self) -> str:
        return ""

    def atoms(self) -> list[Predicate]:
        return []

    @property
    def is_empty(self) -> bool:
        return True


@dataclass(frozen=True)
class Equals(Predicate):
    """``field == value``; a ``None`` value matches nulls."""

    field: str
    value: Any

    def evaluate(self, row: Mapping[str, Any]) -> bool:
        return row[self.field] == self.value

    def to_expr(self) -> pl.Expr:
        col = pl.col(self.field)
        if self.value is None:
            return col.is_null()
        return col == self.value

    def to_code(self) -> str:
        col = f"pl.col({self.field!r})"
        if self.value is None:
            return f"{col}.is_null()"
        return f"{col} == {self.value!r}"

    def to_sql(self) -> str:
        col = _quote_ident(self.field)
        if self.value is None:
            return f"{col} IS NULL"
        return f"{col} = {_sql_literal(self.value)}"


@dataclass(frozen=True)
class In(Predicate):
    """``field`` is one of ``values``; a ``None`` among them matches nulls."""

    field: str
    values: tuple[Any, ...]

    def _split(self) -> tuple[list[Any], bool]:
        non_null = [v for v in self.values if v is not None]
        return non_null, len(non_null) < len(self.values)

    def evaluate(self, row: Mapping[str, Any]) -> bool:
        return row[self.field] in self.values

    def to_expr(self) -> pl.Expr:
        col = pl.col(self.field)
        non_null, has_null = self._split()
        if not non_null:
            return col.is_null()
        expr = col.is_in(non_null)
        if has_null:
            expr = expr | col.is_null()
        return expr

    def to_code(self) -> str:
        col = f"pl.col({self.field!r})"
        non_null, has_null = self._split()
        if not non_null:
            return f"{col}.is_null()"
        code = f"{col}.is_in({non_null!r})"
        if has_null:
            code = f"{code} | {col}.is_null()"
        return code

    def to_sql(self) -> str:
        col = _quote_ident(self.field)
        non_null, has_null = self._split()
        if not non_null:
            return f"{col} IS NULL"
        sql = f"{col} IN ({', '.join(_sql_literal(v) for v in non_null)})"
        if has_null:
            sql = f"({sql} OR {col} IS NULL)"
        return sql


@dataclass(frozen=True)
class And(Predicate):
    """Logical AND of two predicates."""

    left: Predicate
    right: Predicate

    def evaluate(self, row: Mapping[str, Any]) -> bool:
        return self.left.evaluate(row) and self.right.evaluate(row)

    def to_expr(self) -> pl.Expr:
        return self.left.to_expr() & self.right.to_expr()

    def atoms(self) -> list[Predicate]:
        return self.left.atoms() + self.right.atoms()

    def to_code(self) -> str:
        return " & ".join(f"({a.to_code()})" for a in self.atoms())

    def to_sql(self) -> str:
        return " AND ".join(a.to_sql() for a in self.atoms())


def build_predicate(selection: SelectionState) -> Predicate:
    """Combine every filtering field of *selection* into one predicate.

    Returns :class:`Empty` when nothing is filtering.  Otherwise each
    filtering field contributes an :class:`Equals` (one chosen level) or
    :class:`In` (several), with levels in catalog order, and the atoms are
    folded left to right in catalog field order with :class:`And`.
    """
    if not selection.any_filtering():
        return Empty()

    atoms: list[Predicate] = []
    for name in selection.filtering_fields():
        chosen = selection.chosen(name)
        if len(chosen) == 1:
            atoms.append(Equals(name, chosen[0]))
        else:
            atoms.append(In(name, tuple(chosen)))
    return reduce(And, atoms)
