"""Plain data records shared by the pivot engine modules."""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field as dc_field
from typing import Any, Literal

import polars as pl

from reflex_pivot_table.errors import LayoutError, UnknownFieldError

Slot = Literal["rows", "cols"]

NULL_LABEL: str = "NA"


def pick_null_label(taken: Iterable[str]) -> str:
    """Return ``"NA"``, bracketed as often as needed to differ from every label in *taken*."""
    taken = set(taken)
    label = NULL_LABEL
    while label in taken:
        label = f"<{label}>"
    return label


def string_labels(values: pl.Series, missing: str | None = None) -> list[str]:
    """Display labels of *values*: the polars String cast, nulls as *missing*.

    Filter dialogs, column headers and table cells all label levels
    through this function so the same level reads the same everywhere.
    When *missing* is ``None`` a null label is picked that no non-null
    label in *values* collides with.
    """
    rendered = values.cast(pl.String).to_list()
    if missing is None:
        missing = pick_null_label(s for s in rendered if s is not None)
    return [missing if s is None else s for s in rendered]


@dataclass(frozen=True)
class Field:
    """A catalogued field: its name, distinct-level count and levels.

    ``levels`` holds the native polars values in sorted order with a null
    level (if any) last; ``labels`` holds one unique display string per
    level.  Widgets send labels back, so :meth:`resolve` accepts either
    the native value or its label.
    """

    name: str
    n_levels: int
    levels: tuple[Any, ...]
    labels: tuple[str, ...] = ()
    _by_label: dict[str, Any] = dc_field(init=False, repr=False, compare=False)
    _label_of: dict[Any, str] = dc_field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        labels = self.labels
        if not labels and self.levels:
            labels = tuple(string_labels(pl.Series(values=list(self.levels), strict=False)))
        if len(labels) != len(self.levels):
            raise ValueError(f"Field {self.name!r} needs one label per level")
        object.__setattr__(self, "labels", tuple(labels))
        object.__setattr__(self, "_by_label", dict(zip(labels, self.levels)))
        object.__setattr__(self, "_label_of", dict(zip(self.levels, labels)))

    @property
    def null_label(self) -> str:
        """Label of the null level, or the one it would get."""
        if None in self._label_of:
            return self._label_of[None]
        return pick_null_label(self.labels)

    def label(self, level: Any) -> str:
        return self._label_of[level]

    def resolve(self, value: Any) -> tuple[bool, Any]:
        """Map *value* onto a known level.

        Returns:
            ``(True, level)`` when *value* equals a level or a level's label,
            otherwise ``(False, value)``.
        """
        if value in self.levels:
            return True, value
        if isinstance(value, str) and value in self._by_label:
            return True, self._by_label[value]
        return False, value

    def sort_key(self, level: Any) -> int:
        """Position of *level* in catalog order, used to keep predicates deterministic."""
        return self.levels.index(level)


class FieldCatalog:
    """Ordered collection of :class:`Field` records keyed by name."""

    def __init__(self, fields: Sequence[Field], max_levels: int) -> None:
        self.max_levels = max_levels
        self._fields: dict[str, Field] = {f.name: f for f in fields}

    def __getitem__(self, name: str) -> Field:
        try:
            return self._fields[name]
        except KeyError:
            raise UnknownFieldError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def names(self) -> list[str]:
        return list(self._fields)

    def __repr__(self) -> str:
        return f"FieldCatalog({self.names!r}, max_levels={self.max_levels})"


def check_disjoint(row_fields: Sequence[str], col_fields: Sequence[str]) -> None:
    """Raise :class:`LayoutError` if a field repeats within or across the two slots."""
    seen: set[str] = set()
    for name in [*row_fields, *col_fields]:
        if name in seen:
            raise LayoutError(f"Field {name!r} is placed more than once in the pivot layout")
        seen.add(name)


@dataclass
class PivotLayout:
    """The user's partition of fields into ordered row keys and column keys.

    A field is in at most one slot.  Moving a field into a slot removes it
    from wherever it was before, which is how a drag between two ordering
    lists behaves.
    """

    row_fields: list[str] = dc_field(default_factory=list)
    col_fields: list[str] = dc_field(default_factory=list)

    def __post_init__(self) -> None:
        self.row_fields = list(self.row_fields)
        self.col_fields = list(self.col_fields)
        check_disjoint(self.row_fields, self.col_fields)

    @property
    def group_keys(self) -> list[str]:
        return [*self.row_fields, *self.col_fields]

    def slot_of(self, name: str) -> Slot | None:
        if name in self.row_fields:
            return "rows"
        if name in self.col_fields:
            return "cols"
        return None

    def _slot_list(self, slot: Slot) -> list[str]:
        if slot == "rows":
            return self.row_fields
        if slot == "cols":
            return self.col_fields
        raise LayoutError(f"Unknown pivot slot: {slot!r}")

    def place(self, name: str, slot: Slot, index: int | None = None) -> None:
        """Move *name* into *slot* at *index* (appended when ``None``)."""
        target = self._slot_list(slot)
        self.remove(name)
        if index is None:
            target.append(name)
        else:
            target.insert(index, name)

    def remove(self, name: str) -> None:
        """Return *name* to the pool of unplaced fields (no-op if unplaced)."""
        if name in self.row_fields:
            self.row_fields.remove(name)
        if name in self.col_fields:
            self.col_fields.remove(name)

    def shift(self, name: str, offset: int) -> None:
        """Move *name* by *offset* positions within its current slot, clamped."""
        slot = self.slot_of(name)
        if slot is None:
            return
        fields = self._slot_list(slot)
        old = fields.index(name)
        new = max(0, min(len(fields) - 1, old + offset))
        fields.insert(new, fields.pop(old))

    def copy(self) -> "PivotLayout":
        return PivotLayout(list(self.row_fields), list(self.col_fields))


@dataclass(frozen=True)
class BoundedResult:
    """A grouped result capped at ``record_limit`` rows."""

    frame: pl.DataFrame
    truncated: bool
    record_limit: int

    @property
    def warning(self) -> str | None:
        if not self.truncated:
            return None
        return f"Warning: Only showing first {self.record_limit} rows."
