"""Reusable Reflex pivot table: state mixin and UI helpers.

Users inherit from :class:`PivotTableMixin` **and** ``rx.State``, call
:meth:`PivotTableMixin.set_pivot_source` with any LazyFrame, and render
with :func:`pivot_table`.

``PivotTableMixin`` is a Reflex **state mixin** (``mixin=True``).  Each
subclass gets its own independent set of ``pivot_*`` reactive variables,
so several pivot tables on the same page do not interfere with each
other.

The LazyFrame is never collected in full.  The catalog scan pulls only
distinct values of low-cardinality fields, and each refresh collects at
most ``record_limit`` grouped rows.

Typical usage::

    from reflex_pivot_table import PivotTableMixin, pivot_table, scan_source

    class MyState(PivotTableMixin, rx.State):
        def load_data(self):
            yield from self.set_pivot_source(scan_source("sales.parquet"))

    def index():
        return rx.cond(MyState.pivot_loaded, pivot_table(MyState))
"""

import time

import polars as pl
import reflex as rx

from reflex_pivot_table.aggregation import _DEFAULT_RECORD_LIMIT
from reflex_pivot_table.catalog import _DEFAULT_MAX_LEVELS
from reflex_pivot_table.engine import PivotEngine
from reflex_pivot_table.errors import CatalogError, PivotError
from reflex_pivot_table.indicators import IndicatorSignal, sync_indicators
from reflex_pivot_table.models import FieldCatalog, string_labels

SHADED_COLOR: str = "#b6b8ba"
UNSHADED_COLOR: str = "#ffffff"


# ---------------------------------------------------------------------------
# Module-level engine cache
# ---------------------------------------------------------------------------

class _PivotCache:
    """Holds the engine outside Reflex state.

    LazyFrames are not JSON-serialisable, so they cannot live inside
    ``rx.State``.  Entries are keyed by state class and client token.
    """

    def __init__(self) -> None:
        self.engine: PivotEngine | None = None


_cache_registry: dict[str, _PivotCache] = {}


def _get_cache(cache_id: str) -> _PivotCache:
    """Return (or create) the cache entry for *cache_id*."""
    if cache_id not in _cache_registry:
        _cache_registry[cache_id] = _PivotCache()
    return _cache_registry[cache_id]


def _frame_to_cells(
    df: pl.DataFrame,
    catalog: FieldCatalog | None = None,
) -> tuple[list[str], list[list[str]]]:
    """Convert a wide table into header labels and rows of display strings.

    Row-key cells use the same level labels as the filter dialog.
    """
    cells = []
    for name in df.columns:
        missing = catalog[name].null_label if catalog is not None and name in catalog else None
        cells.append(string_labels(df.get_column(name), missing))
    return list(df.columns), [list(row) for row in zip(*cells)]


# ---------------------------------------------------------------------------
# PivotTableMixin
# ---------------------------------------------------------------------------

class PivotTableMixin(rx.State, mixin=True):
    """Reflex State mixin for an interactive pivot table.

    All state variable names are prefixed with ``pivot_`` to avoid
    collisions when composed with other state.

    Example::

        class MyState(PivotTableMixin, rx.State):
            def load_data(self):
                yield from self.set_pivot_source(pl.scan_csv("data.csv"))
    """

    # -- Frontend state vars --
    pivot_loaded: bool = False
    pivot_loading: bool = False
    pivot_source_fields: list[str] = []
    pivot_row_fields: list[str] = []
    pivot_col_fields: list[str] = []
    pivot_shaded_fields: list[str] = []
    pivot_columns: list[str] = []
    pivot_rows: list[list[str]] = []
    pivot_warnings: list[str] = []
    pivot_stats: str = ""
    pivot_dialog_open: bool = False
    pivot_dialog_field: str = ""
    pivot_dialog_levels: list[str] = []
    pivot_dialog_chosen: list[str] = []
    pivot_code: str = ""
    pivot_sql: str = ""
    pivot_code_expanded: bool = False

    # -- Backend-only vars (not sent to frontend) --
    _pivot_cache_id: str = ""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_pivot_source(
        self,
        lf: pl.LazyFrame | pl.DataFrame,
        max_levels: int = _DEFAULT_MAX_LEVELS,
        record_limit: int = _DEFAULT_RECORD_LIMIT,
    ):
        """Build the field catalog for *lf* and show the initial total count.

        This is a **generator** -- use ``yield from self.set_pivot_source(...)``
        inside your event handler so the loading state reaches the
        frontend before the catalog scan runs.

        Args:
            lf: The data source (local or remote LazyFrame, or DataFrame).
            max_levels: Fields with this many distinct values or more are
                not offered for pivoting.
            record_limit: Maximum grouped rows brought into memory.
        """
        self.pivot_loading = True  # type: ignore[assignment]
        self.pivot_stats = "Scanning fields..."  # type: ignore[assignment]
        yield

        cache_id = f"{type(self).__name__}:{self.router.session.client_token}"
        self._pivot_cache_id = cache_id  # type: ignore[assignment]
        cache = _get_cache(cache_id)

        try:
            cache.engine = PivotEngine(lf, max_levels=max_levels, record_limit=record_limit)
        except CatalogError as exc:
            print(f"[PivotTable] {exc}")
            cache.engine = None
            self.pivot_loaded = False  # type: ignore[assignment]
            self.pivot_loading = False  # type: ignore[assignment]
            self.pivot_warnings = ["Unable to read the data source."]  # type: ignore[assignment]
            self.pivot_stats = ""  # type: ignore[assignment]
            return

        self.pivot_loaded = True  # type: ignore[assignment]
        self._sync_pivot_layout()
        self._sync_pivot_indicators()
        self._refresh_pivot()
        self.pivot_loading = False  # type: ignore[assignment]

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def move_pivot_field(self, field: str, slot: str):
        """Move *field* to ``"rows"``, ``"cols"`` or back to ``"source"``."""
        engine = self._pivot_engine()
        if engine is None:
            return
        self.pivot_loading = True  # type: ignore[assignment]
        yield

        if slot == "source":
            engine.remove(field)
        else:
            engine.place(field, slot)  # type: ignore[arg-type]
        self._sync_pivot_layout()
        self._refresh_pivot()
        self.pivot_loading = False  # type: ignore[assignment]

    def shift_pivot_field(self, field: str, offset: int):
        """Move *field* up (negative) or down (positive) within its slot."""
        engine = self._pivot_engine()
        if engine is None:
            return
        self.pivot_loading = True  # type: ignore[assignment]
        yield

        engine.shift(field, offset)
        self._sync_pivot_layout()
        self._refresh_pivot()
        self.pivot_loading = False  # type: ignore[assignment]

    def handle_pivot_field_click(self, field: str) -> None:
        """Open the filter dialog for *field*."""
        engine = self._pivot_engine()
        if engine is None or field not in engine.catalog:
            return
        self.pivot_dialog_field = field  # type: ignore[assignment]
        self.pivot_dialog_levels = list(engine.catalog[field].labels)  # type: ignore[assignment]
        self.pivot_dialog_chosen = engine.selection.chosen_labels(field)  # type: ignore[assignment]
        self.pivot_dialog_open = True  # type: ignore[assignment]

    def set_pivot_dialog_open(self, is_open: bool) -> None:
        self.pivot_dialog_open = is_open  # type: ignore[assignment]

    def toggle_pivot_level(self, label: str):
        """Add or remove one level of the dialog's field from its filter."""
        engine = self._pivot_engine()
        field = self.pivot_dialog_field
        if engine is None or not field:
            return
        self.pivot_loading = True  # type: ignore[assignment]
        yield

        try:
            engine.toggle_level(field, label)
        except PivotError as exc:
            print(f"[PivotTable] rejected filter value: {exc}")
            self.pivot_warnings = [f"'{label}' is not a level of {field}."]  # type: ignore[assignment]
            self.pivot_loading = False  # type: ignore[assignment]
            return
        self.pivot_dialog_chosen = engine.selection.chosen_labels(field)  # type: ignore[assignment]
        self._sync_pivot_indicators()
        self._refresh_pivot()
        self.pivot_loading = False  # type: ignore[assignment]

    def clear_pivot_filter(self):
        """Clear the filter of the field shown in the dialog."""
        engine = self._pivot_engine()
        field = self.pivot_dialog_field
        if engine is None or not field:
            return
        self.pivot_loading = True  # type: ignore[assignment]
        yield

        engine.clear_filter(field)
        self.pivot_dialog_chosen = []  # type: ignore[assignment]
        self._sync_pivot_indicators()
        self._refresh_pivot()
        self.pivot_loading = False  # type: ignore[assignment]

    def clear_all_pivot_filters(self):
        engine = self._pivot_engine()
        if engine is None:
            return
        self.pivot_loading = True  # type: ignore[assignment]
        yield

        engine.clear_filters()
        self.pivot_dialog_chosen = []  # type: ignore[assignment]
        self._sync_pivot_indicators()
        self._refresh_pivot()
        self.pivot_loading = False  # type: ignore[assignment]

    def toggle_pivot_code(self) -> None:
        self.pivot_code_expanded = not self.pivot_code_expanded  # type: ignore[assignment]

    def download_pivot_csv(self) -> rx.event.EventSpec | None:
        """Download the current wide table as ``data_<date>.csv``."""
        engine = self._pivot_engine()
        if engine is None:
            return None
        return rx.download(  # type: ignore[return-value]
            data=engine.to_csv(),
            filename=engine.export_filename(),
        )

    def download_pivot_preset(self) -> rx.event.EventSpec | None:
        """Download the layout and filters as ``pivot_preset.json``."""
        engine = self._pivot_engine()
        if engine is None:
            return None
        return rx.download(  # type: ignore[return-value]
            data=engine.dump_preset(),
            filename="pivot_preset.json",
        )

    async def handle_pivot_preset_upload(self, files: list[rx.UploadFile]):
        """Apply an uploaded JSON preset (layout + filters) to the pivot."""
        engine = self._pivot_engine()
        if not files or engine is None:
            return

        self.pivot_loading = True  # type: ignore[assignment]
        self.pivot_stats = "Applying preset..."  # type: ignore[assignment]
        yield

        upload_file = files[0]
        content = await upload_file.read()
        text = content.decode("utf-8") if isinstance(content, bytes) else content

        t0 = time.perf_counter()
        try:
            engine.load_preset(text)
        except PivotError as exc:
            print(f"[PivotTable] preset rejected: {exc}")
            self.pivot_warnings = ["The uploaded preset does not match this data."]  # type: ignore[assignment]
            self.pivot_loading = False  # type: ignore[assignment]
            return

        self._sync_pivot_layout()
        self._sync_pivot_indicators()
        self._refresh_pivot()
        self.pivot_loading = False  # type: ignore[assignment]
        print(f"[PivotTable] preset applied ({(time.perf_counter() - t0) * 1000:.1f}ms)")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _pivot_engine(self) -> PivotEngine | None:
        cache_id = self._pivot_cache_id
        if not cache_id:
            return None
        return _get_cache(cache_id).engine

    def _sync_pivot_layout(self) -> None:
        engine = self._pivot_engine()
        if engine is None:
            return
        self.pivot_source_fields = engine.unplaced_fields  # type: ignore[assignment]
        self.pivot_row_fields = list(engine.layout.row_fields)  # type: ignore[assignment]
        self.pivot_col_fields = list(engine.layout.col_fields)  # type: ignore[assignment]

    def _sync_pivot_indicators(self) -> None:
        """Re-send the shade state of every field after a selection change."""
        engine = self._pivot_engine()
        if engine is None:
            return
        shaded: list[str] = []

        def _emit(signal: IndicatorSignal) -> None:
            if signal.shaded:
                shaded.append(signal.field)

        sync_indicators(engine.selection, _emit)
        self.pivot_shaded_fields = shaded  # type: ignore[assignment]

    def _refresh_pivot(self) -> None:
        """Recompute the wide table and push it to the frontend."""
        engine = self._pivot_engine()
        if engine is None:
            return

        t0 = time.perf_counter()
        view = engine.recompute()
        if view.error is None or view.table.width > 0:
            columns, rows = _frame_to_cells(view.table, engine.catalog)
            self.pivot_columns = columns  # type: ignore[assignment]
            self.pivot_rows = rows  # type: ignore[assignment]
        self.pivot_warnings = view.messages  # type: ignore[assignment]
        self.pivot_code = engine.polars_code()  # type: ignore[assignment]
        self.pivot_sql = engine.sql()  # type: ignore[assignment]

        elapsed_ms = (time.perf_counter() - t0) * 1000
        self.pivot_stats = (  # type: ignore[assignment]
            f"{view.table.height:,} rows x {view.table.width:,} columns  {elapsed_ms:.0f}ms"
        )


# ---------------------------------------------------------------------------
# UI helpers
# ---------------------------------------------------------------------------

def _field_chip(state_cls: type, field: rx.Var, slot: str) -> rx.Component:
    """One draggable-looking field chip with move buttons.

    Clicking the name opens the filter dialog; the chip is shaded while
    the field is filtering.
    """
    buttons: list[rx.Component] = []
    if slot != "rows":
        buttons.append(
            rx.icon_button(
                rx.icon("rows_3", size=12),
                size="1",
                variant="ghost",
                title="Move to rows",
                on_click=state_cls.move_pivot_field(field, "rows"),
            )
        )
    if slot != "cols":
        buttons.append(
            rx.icon_button(
                rx.icon("columns_3", size=12),
                size="1",
                variant="ghost",
                title="Move to columns",
                on_click=state_cls.move_pivot_field(field, "cols"),
            )
        )
    if slot != "source":
        buttons.extend(
            [
                rx.icon_button(
                    rx.icon("chevron_left", size=12),
                    size="1",
                    variant="ghost",
                    on_click=state_cls.shift_pivot_field(field, -1),
                ),
                rx.icon_button(
                    rx.icon("chevron_right", size=12),
                    size="1",
                    variant="ghost",
                    on_click=state_cls.shift_pivot_field(field, 1),
                ),
                rx.icon_button(
                    rx.icon("x", size=12),
                    size="1",
                    variant="ghost",
                    title="Remove",
                    on_click=state_cls.move_pivot_field(field, "source"),
                ),
            ]
        )

    return rx.hstack(
        rx.text(
            field,
            size="2",
            cursor="pointer",
            on_click=state_cls.handle_pivot_field_click(field),
        ),
        *buttons,
        spacing="1",
        align="center",
        padding="2px 8px",
        border="1px solid var(--gray-a6)",
        border_radius="6px",
        background=rx.cond(
            state_cls.pivot_shaded_fields.contains(field),  # type: ignore[attr-defined]
            SHADED_COLOR,
            UNSHADED_COLOR,
        ),
    )


def _field_bin(state_cls: type, title: str, fields: rx.Var, slot: str) -> rx.Component:
    return rx.box(
        rx.text(title, size="1", weight="bold", color="var(--gray-11)"),
        rx.flex(
            rx.foreach(fields, lambda f: _field_chip(state_cls, f, slot)),
            wrap="wrap",
            spacing="2",
            min_height="2em",
        ),
        padding="0.5em",
        border_radius="8px",
        background="var(--gray-a2)",
        border="1px solid var(--gray-a5)",
        width="100%",
    )


def pivot_field_bins(state_cls: type) -> rx.Component:
    """Return the Variables / Columns / Rows field bins."""
    return rx.vstack(
        _field_bin(state_cls, "Variables", state_cls.pivot_source_fields, "source"),
        _field_bin(state_cls, "Columns", state_cls.pivot_col_fields, "cols"),
        _field_bin(state_cls, "Rows", state_cls.pivot_row_fields, "rows"),
        spacing="2",
        width="100%",
    )


def pivot_filter_dialog(state_cls: type) -> rx.Component:
    """Return the level-selection dialog opened by clicking a field name."""
    return rx.dialog.root(
        rx.dialog.content(
            rx.dialog.title("Filter: ", state_cls.pivot_dialog_field),
            rx.dialog.description(
                "Choose the levels to keep. No selection means all levels.",
                size="1",
            ),
            rx.scroll_area(
                rx.vstack(
                    rx.foreach(
                        state_cls.pivot_dialog_levels,
                        lambda level: rx.checkbox(
                            level,
                            checked=state_cls.pivot_dialog_chosen.contains(level),  # type: ignore[attr-defined]
                            on_change=lambda _checked: state_cls.toggle_pivot_level(level),
                        ),
                    ),
                    spacing="1",
                ),
                max_height="50vh",
                type="auto",
            ),
            rx.hstack(
                rx.button(
                    "Clear",
                    variant="outline",
                    color_scheme="orange",
                    on_click=state_cls.clear_pivot_filter,
                ),
                rx.dialog.close(rx.button("Done")),
                justify="end",
                spacing="2",
                margin_top="1em",
            ),
        ),
        open=state_cls.pivot_dialog_open,
        on_open_change=state_cls.set_pivot_dialog_open,
    )


def pivot_warning(state_cls: type) -> rx.Component:
    """Return the inline warning lines (truncation, refresh failures)."""
    return rx.foreach(
        state_cls.pivot_warnings,
        lambda message: rx.text(message, color="red", size="2"),
    )


def pivot_grid(state_cls: type, *, height: str = "600px") -> rx.Component:
    """Return the wide table itself."""
    return rx.box(
        rx.table.root(
            rx.table.header(
                rx.table.row(
                    rx.foreach(
                        state_cls.pivot_columns,
                        lambda c: rx.table.column_header_cell(c),
                    ),
                ),
            ),
            rx.table.body(
                rx.foreach(
                    state_cls.pivot_rows,
                    lambda row: rx.table.row(
                        rx.foreach(row, lambda cell: rx.table.cell(cell)),
                    ),
                ),
            ),
            size="1",
            variant="surface",
        ),
        overflow="auto",
        max_height=height,
        width="100%",
    )


def pivot_code_panel(state_cls: type) -> rx.Component:
    """Return a collapsible panel with the polars code and SQL of the query."""
    return rx.box(
        rx.hstack(
            rx.button(
                rx.cond(
                    state_cls.pivot_code_expanded,
                    rx.icon("chevron_down", size=14),
                    rx.icon("chevron_right", size=14),
                ),
                size="1",
                variant="ghost",
                on_click=state_cls.toggle_pivot_code,
                padding="2px",
            ),
            rx.icon("code", size=14),
            rx.text("Query", size="1", weight="bold"),
            rx.spacer(),
            rx.text(state_cls.pivot_stats, size="1", font_family="monospace", color="var(--gray-9)"),
            align="center",
            spacing="2",
            width="100%",
        ),
        rx.cond(
            state_cls.pivot_code_expanded,
            rx.vstack(
                rx.code_block(state_cls.pivot_code, language="python", wrap_long_lines=True),
                rx.code_block(state_cls.pivot_sql, language="sql", wrap_long_lines=True),
                width="100%",
            ),
        ),
        padding="0.5em 0.8em",
        border_radius="8px",
        background="var(--blue-a2)",
        border="1px solid var(--blue-a5)",
        margin_top="0.5em",
    )


def pivot_table(state_cls: type, *, height: str = "600px", show_code_panel: bool = True) -> rx.Component:
    """Return a complete pivot table bound to a :class:`PivotTableMixin` state.

    Includes the warning line, the field bins, the filter dialog, the
    download/preset toolbar, the wide table and (optionally) the query
    code panel.

    Args:
        state_cls: The ``rx.State`` subclass that also inherits from
            :class:`PivotTableMixin`.
        height: Maximum CSS height of the table area.
        show_code_panel: Show the polars / SQL code panel below the table.
    """
    upload_id = f"pivot_preset_upload_{state_cls.__name__}"

    toolbar = rx.hstack(
        rx.button(
            rx.icon("download", size=14),
            "Download CSV",
            size="1",
            on_click=state_cls.download_pivot_csv,
        ),
        rx.button(
            rx.icon("save", size=14),
            "Save preset",
            size="1",
            variant="outline",
            on_click=state_cls.download_pivot_preset,
        ),
        rx.upload(
            rx.button(rx.icon("upload", size=14), "Load preset", size="1", variant="outline"),
            id=upload_id,
            accept={".json": ["application/json"]},
            max_files=1,
            no_drag=True,
            on_drop=state_cls.handle_pivot_preset_upload(  # type: ignore[attr-defined]
                rx.upload_files(upload_id=upload_id)
            ),
            padding="0",
            border="none",
        ),
        rx.button(
            rx.icon("x", size=14),
            "Clear filters",
            size="1",
            variant="outline",
            color_scheme="orange",
            on_click=state_cls.clear_all_pivot_filters,
        ),
        rx.cond(state_cls.pivot_loading, rx.spinner(size="1")),
        spacing="2",
        align="center",
    )

    children: list[rx.Component] = [
        pivot_warning(state_cls),
        pivot_field_bins(state_cls),
        pivot_filter_dialog(state_cls),
        toolbar,
        pivot_grid(state_cls, height=height),
    ]
    if show_code_panel:
        children.append(pivot_code_panel(state_cls))
    return rx.vstack(*children, spacing="3", width="100%")
