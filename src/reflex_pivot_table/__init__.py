"""reflex-pivot-table – interactive count cross-tabs over polars LazyFrames.

Install the package for the engine, the Reflex pivot component and the CLI::

    pip install reflex-pivot-table

The engine (:class:`PivotEngine`) works on any LazyFrame, local or
remote, and never collects more than ``record_limit`` grouped rows.  The
Reflex wiring (:class:`PivotTableMixin`, :func:`pivot_table`) renders it.
"""

from reflex_pivot_table.aggregation import collect_bounded, grouped_counts
from reflex_pivot_table.catalog import build_field_catalog
from reflex_pivot_table.codegen import generate_polars_code, generate_sql
from reflex_pivot_table.engine import PivotEngine, PivotView
from reflex_pivot_table.errors import (
    CatalogError,
    InvalidLevelError,
    LayoutError,
    PivotError,
    QueryError,
    ReshapeInconsistency,
    UnknownFieldError,
)
from reflex_pivot_table.export import export_filename, to_csv
from reflex_pivot_table.indicators import IndicatorSignal, indicator_signals, sync_indicators
from reflex_pivot_table.models import BoundedResult, Field, FieldCatalog, PivotLayout
from reflex_pivot_table.pivot_grid import (
    PivotTableMixin,
    pivot_code_panel,
    pivot_field_bins,
    pivot_filter_dialog,
    pivot_grid,
    pivot_table,
    pivot_warning,
)
from reflex_pivot_table.predicates import And, Empty, Equals, In, Predicate, build_predicate
from reflex_pivot_table.presets import apply_preset, dumps_preset, loads_preset
from reflex_pivot_table.reshape import COLUMN_KEY_SEPARATOR, widen
from reflex_pivot_table.selection import FieldSelection, SelectionState
from reflex_pivot_table.sources import scan_source
