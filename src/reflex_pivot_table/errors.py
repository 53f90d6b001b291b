"""Exception hierarchy for the pivot engine.

Catalog failures are fatal at start-up.  Query and reshape failures are
caught by :meth:`reflex_pivot_table.engine.PivotEngine.recompute`, which
keeps the last good table on screen and shows an inline warning instead.
"""


class PivotError(Exception):
    """Base class for all pivot engine errors."""


class CatalogError(PivotError):
    """The data source could not be introspected to build a field catalog."""


class InvalidLevelError(PivotError, ValueError):
    """A filter value is not one of the field's known levels."""

    def __init__(self, field: str, values: list[object]) -> None:
        self.field = field
        self.values = values
        shown = ", ".join(repr(v) for v in values)
        super().__init__(f"Unknown level(s) for field {field!r}: {shown}")


class UnknownFieldError(PivotError, KeyError):
    """A field name is not present in the field catalog."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(field)

    def __str__(self) -> str:
        return f"Field {self.field!r} is not in the pivot catalog"


class LayoutError(PivotError, ValueError):
    """Row and column fields overlap or repeat."""


class QueryError(PivotError):
    """Filtering or grouping against the data source failed."""


class ReshapeInconsistency(PivotError):
    """A (row key, column key) pair occurs more than once in a grouped result."""
