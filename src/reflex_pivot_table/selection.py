"""Per-field filter selections.

Each catalogued field owns one :class:`FieldSelection`.  Whether a field
is filtering is always derived from its chosen set, never stored, so it
cannot drift from the predicate built from the same state.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from reflex_pivot_table.errors import InvalidLevelError, UnknownFieldError
from reflex_pivot_table.models import FieldCatalog


@dataclass(frozen=True)
class FieldSelection:
    """The chosen filter levels of a single field."""

    field: str
    chosen: frozenset = frozenset()

    @property
    def is_filtering(self) -> bool:
        return len(self.chosen) > 0


class SelectionState:
    """Mapping of field name to :class:`FieldSelection` for a whole catalog."""

    def __init__(self, catalog: FieldCatalog) -> None:
        self.catalog = catalog
        self._selections: dict[str, FieldSelection] = {
            f.name: FieldSelection(f.name) for f in catalog
        }

    def __getitem__(self, field: str) -> FieldSelection:
        if field not in self._selections:
            raise UnknownFieldError(field)
        return self._selections[field]

    def set_chosen(self, field: str, values: Iterable[Any]) -> None:
        """Replace the chosen levels of *field*.

        Each value may be a native level or its string label.  Every value
        must be a known level of the field; nothing is applied otherwise.

        Raises:
            UnknownFieldError: If *field* is not catalogued.
            InvalidLevelError: If any value is not one of the field's levels.
        """
        spec = self.catalog[field]
        chosen: set[Any] = set()
        rejected: list[Any] = []
        for value in values:
            ok, level = spec.resolve(value)
            if ok:
                chosen.add(level)
            else:
                rejected.append(value)
        if rejected:
            raise InvalidLevelError(field, rejected)
        self._selections[field] = FieldSelection(field, frozenset(chosen))

    def toggle(self, field: str, value: Any) -> None:
        """Add *value* to the chosen levels of *field*, or remove it if present."""
        spec = self.catalog[field]
        ok, level = spec.resolve(value)
        if not ok:
            raise InvalidLevelError(field, [value])
        current = set(self._selections[field].chosen)
        current.symmetric_difference_update({level})
        self._selections[field] = FieldSelection(field, frozenset(current))

    def clear(self, field: str) -> None:
        self.set_chosen(field, [])

    def clear_all(self) -> None:
        for name in self._selections:
            self._selections[name] = FieldSelection(name)

    def chosen(self, field: str) -> list[Any]:
        """Chosen levels of *field* in catalog level order."""
        spec = self.catalog[field]
        return sorted(self._selections[field].chosen, key=spec.sort_key)

    def chosen_labels(self, field: str) -> list[str]:
        spec = self.catalog[field]
        return [spec.label(v) for v in self.chosen(field)]

    def is_filtering(self, field: str) -> bool:
        return self[field].is_filtering

    def any_filtering(self) -> bool:
        return any(s.is_filtering for s in self._selections.values())

    def filtering_fields(self) -> list[str]:
        """Names of filtering fields, in catalog order."""
        return [name for name in self.catalog.names if self._selections[name].is_filtering]

    def to_dict(self) -> dict[str, list[str]]:
        """Chosen labels of every filtering field, for JSON presets."""
        return {name: self.chosen_labels(name) for name in self.filtering_fields()}
