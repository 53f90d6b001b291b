"""Pivot engine: state plus an explicit, pull-based recompute.

:class:`PivotEngine` owns the field catalog, the per-field selections and
the pivot layout.  Callers mutate state through its methods and then call
:meth:`PivotEngine.recompute`, which rebuilds predicate -> grouped result
-> wide table from scratch.  Nothing is updated incrementally.

Typical usage::

    engine = PivotEngine(pl.scan_parquet("sales.parquet"), record_limit=50_000)
    engine.place("region", "rows")
    engine.place("year", "cols")
    engine.set_chosen("channel", ["web"])
    view = engine.recompute()
    view.table      # wide polars DataFrame
    view.warning    # truncation warning or None
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import polars as pl

from reflex_pivot_table.aggregation import _DEFAULT_RECORD_LIMIT, collect_bounded, grouped_counts
from reflex_pivot_table.catalog import _DEFAULT_MAX_LEVELS, build_field_catalog
from reflex_pivot_table.codegen import generate_polars_code, generate_sql
from reflex_pivot_table.errors import QueryError, ReshapeInconsistency, UnknownFieldError
from reflex_pivot_table.export import export_filename, to_csv
from reflex_pivot_table.indicators import IndicatorSignal, indicator_signals, sync_indicators
from reflex_pivot_table.models import FieldCatalog, PivotLayout, Slot
from reflex_pivot_table.predicates import Predicate, build_predicate
from reflex_pivot_table.presets import dumps_preset, loads_preset
from reflex_pivot_table.reshape import COLUMN_KEY_SEPARATOR, widen
from reflex_pivot_table.selection import SelectionState
from reflex_pivot_table.sources import as_lazyframe

REFRESH_FAILED_MESSAGE: str = "Unable to refresh the table; showing the last result."


@dataclass(frozen=True)
class PivotView:
    """Result of one recompute, ready for the grid widget."""

    table: pl.DataFrame
    truncated: bool
    warning: str | None
    request: int
    error: str | None = None

    @property
    def messages(self) -> list[str]:
        """Inline warning lines to show above the table."""
        return [m for m in (self.warning, self.error) if m]


class PivotEngine:
    """Cross-tab engine over a polars LazyFrame.

    Args:
        source: LazyFrame (local or remote scan) or an in-memory DataFrame.
        catalog: A pre-built catalog.  Built from *source* when ``None``.
        max_levels: Catalog threshold, used only when *catalog* is ``None``.
        record_limit: Maximum grouped rows materialised per recompute.
        separator: Joins column-key values into a single column label.
        on_indicator: Receives one :class:`IndicatorSignal` per field after
            every selection change.

    Raises:
        CatalogError: If the catalog has to be built and the source fails.
    """

    def __init__(
        self,
        source: pl.LazyFrame | pl.DataFrame,
        *,
        catalog: FieldCatalog | None = None,
        max_levels: int = _DEFAULT_MAX_LEVELS,
        record_limit: int = _DEFAULT_RECORD_LIMIT,
        separator: str = COLUMN_KEY_SEPARATOR,
        on_indicator: Callable[[IndicatorSignal], None] | None = None,
    ) -> None:
        if record_limit < 1:
            raise ValueError(f"record_limit must be positive, got {record_limit}")
        self.source = as_lazyframe(source)
        self.catalog = catalog if catalog is not None else build_field_catalog(
            self.source, max_levels=max_levels
        )
        self.selection = SelectionState(self.catalog)
        self.layout = PivotLayout()
        self.record_limit = record_limit
        self.separator = separator
        self.on_indicator = on_indicator
        self._generation = 0
        self._view: PivotView | None = None
        self._last_good: PivotView | None = None

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def set_chosen(self, field: str, values: Iterable[Any]) -> None:
        self.selection.set_chosen(field, values)
        self._selection_changed()

    def toggle_level(self, field: str, value: Any) -> None:
        self.selection.toggle(field, value)
        self._selection_changed()

    def clear_filter(self, field: str) -> None:
        self.selection.clear(field)
        self._selection_changed()

    def clear_filters(self) -> None:
        self.selection.clear_all()
        self._selection_changed()

    def indicators(self) -> list[IndicatorSignal]:
        return indicator_signals(self.selection)

    def _selection_changed(self) -> None:
        if self.on_indicator is not None:
            sync_indicators(self.selection, self.on_indicator)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def place(self, field: str, slot: Slot, index: int | None = None) -> None:
        """Move a catalogued field into the row or column slot."""
        if field not in self.catalog:
            raise UnknownFieldError(field)
        self.layout.place(field, slot, index)

    def remove(self, field: str) -> None:
        self.layout.remove(field)

    def shift(self, field: str, offset: int) -> None:
        self.layout.shift(field, offset)

    def set_layout(self, row_fields: Iterable[str], col_fields: Iterable[str]) -> None:
        """Replace the whole layout; fields must be catalogued and disjoint."""
        layout = PivotLayout(list(row_fields), list(col_fields))
        for name in layout.group_keys:
            if name not in self.catalog:
                raise UnknownFieldError(name)
        self.layout = layout

    @property
    def unplaced_fields(self) -> list[str]:
        placed = set(self.layout.group_keys)
        return [name for name in self.catalog.names if name not in placed]

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def predicate(self) -> Predicate:
        return build_predicate(self.selection)

    def query(self) -> pl.LazyFrame:
        """The lazy grouped-count query for the current state (not collected)."""
        return grouped_counts(
            self.source,
            self.predicate(),
            self.layout.row_fields,
            self.layout.col_fields,
        )

    def begin_request(self) -> int:
        """Start a new recompute and return its token.

        Any result for an older token is discarded by
        :meth:`complete_request`, so a slow query can never overwrite the
        table of a newer one.
        """
        self._generation += 1
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def compute(self, token: int) -> PivotView:
        """Run the pipeline for the current state; errors propagate.

        Raises:
            QueryError: If the source fails.
            ReshapeInconsistency: If the grouped result has duplicate keys.
        """
        layout = self.layout.copy()
        query = grouped_counts(self.source, self.predicate(), layout.row_fields, layout.col_fields)
        bounded = collect_bounded(query, self.record_limit)
        table = widen(
            bounded.frame,
            layout.row_fields,
            layout.col_fields,
            separator=self.separator,
            null_labels=self._null_labels(layout.col_fields),
        )
        return PivotView(
            table=table,
            truncated=bounded.truncated,
            warning=bounded.warning,
            request=token,
        )

    def _null_labels(self, fields: Iterable[str]) -> dict[str, str]:
        return {name: self.catalog[name].null_label for name in fields if name in self.catalog}

    def complete_request(self, token: int, view: PivotView) -> bool:
        """Publish *view* unless a newer request has started since *token*."""
        if not self.is_current(token):
            print(f"[PivotTable] discarded stale result for request {token}")
            return False
        self._view = view
        if view.error is None:
            self._last_good = view
        return True

    def recompute(self) -> PivotView:
        """Rebuild the wide table from the current selection and layout.

        A failing query or reshape does not raise: the last good table is
        kept and the returned view carries a generic inline error message.
        """
        token = self.begin_request()
        try:
            view = self.compute(token)
        except (QueryError, ReshapeInconsistency) as exc:
            print(f"[PivotTable] refresh failed for request {token}: {exc}")
            view = self._fallback_view(token)
        self.complete_request(token, view)
        return view

    def _fallback_view(self, token: int) -> PivotView:
        last = self._last_good
        if last is None:
            return PivotView(
                table=pl.DataFrame(),
                truncated=False,
                warning=None,
                request=token,
                error=REFRESH_FAILED_MESSAGE,
            )
        return PivotView(
            table=last.table,
            truncated=last.truncated,
            warning=last.warning,
            request=token,
            error=REFRESH_FAILED_MESSAGE,
        )

    @property
    def view(self) -> PivotView | None:
        """The most recently published view, or ``None`` before the first recompute."""
        return self._view

    # ------------------------------------------------------------------
    # Export, code panel, presets
    # ------------------------------------------------------------------

    def to_csv(self) -> str:
        view = self._view if self._view is not None else self.recompute()
        return to_csv(view.table)

    def export_filename(self) -> str:
        return export_filename()

    def polars_code(self) -> str:
        return generate_polars_code(
            self.predicate(),
            self.layout.row_fields,
            self.layout.col_fields,
            self.record_limit,
            separator=self.separator,
            null_labels=self._null_labels(self.layout.col_fields),
        )

    def sql(self, table_name: str = "df") -> str:
        return generate_sql(
            self.predicate(),
            self.layout.row_fields,
            self.layout.col_fields,
            self.record_limit,
            table_name=table_name,
        )

    def dump_preset(self) -> str:
        return dumps_preset(self.selection, self.layout)

    def load_preset(self, text: str) -> None:
        loads_preset(text, self.selection, self.layout)
        self._selection_changed()
