"""Example Reflex app demonstrating the pivot table.

Two tabs:
  1. Employees -- a 20-row in-memory DataFrame.  Small enough to see
     every count, and a ``record_limit`` of 5 shows the truncation warning
     as soon as the layout has more than five groups.
  2. Longevity Map (Parquet) -- a remote parquet file on HuggingFace read
     through polars' native ``hf://`` protocol.  Grouping and counting are
     pushed down to the scan; only the grouped rows are collected.
"""

import polars as pl
import reflex as rx

from reflex_pivot_table import PivotTableMixin, pivot_table

PARQUET_HF_URL: str = "hf://datasets/just-dna-seq/annotators/data/longevitymap/weights.parquet"


def _build_employee_frame() -> pl.DataFrame:
    """Create a sample DataFrame with employee data."""
    return pl.DataFrame(
        {
            "department": [
                "Engineering", "Marketing", "Engineering", "Sales", "Engineering",
                "Marketing", "Sales", "Engineering", "Marketing", "Sales",
                "Engineering", "Marketing", "Sales", "Engineering", "Marketing",
                "Sales", "Engineering", "Marketing", "Sales", "Engineering",
            ],
            "office": [
                "Berlin", "London", "London", "Berlin", "Paris",
                "Paris", "London", "Berlin", "Berlin", "Paris",
                "London", "London", "Berlin", "Paris", "Berlin",
                "London", "Berlin", "Paris", "Paris", "London",
            ],
            "level": [
                "senior", "junior", "senior", "junior", "lead",
                "junior", "senior", "junior", "junior", "senior",
                "senior", "junior", "junior", "lead", "senior",
                "senior", "junior", "junior", "junior", "senior",
            ],
            "active": [
                True, True, True, False, True,
                True, False, True, True, True,
                True, False, True, True, True,
                False, True, True, False, True,
            ],
        }
    )


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class EmployeePivotState(PivotTableMixin, rx.State):
    """Pivot over the in-memory employee table."""

    def load_data(self):
        yield from self.set_pivot_source(_build_employee_frame(), record_limit=5)


class LongevityPivotState(PivotTableMixin, rx.State):
    """Pivot over a remote parquet scan."""

    def load_data(self):
        yield from self.set_pivot_source(pl.scan_parquet(PARQUET_HF_URL), max_levels=200)


# ---------------------------------------------------------------------------
# UI components
# ---------------------------------------------------------------------------

def employee_tab() -> rx.Component:
    return rx.box(
        rx.text(
            "Move fields into Rows and Columns, click a field name to filter it. "
            "Filtered fields are shaded grey.",
            margin_bottom="1em",
            color="var(--gray-11)",
        ),
        rx.cond(
            EmployeePivotState.pivot_loaded,
            pivot_table(EmployeePivotState, height="420px"),
            rx.text("Loading...", color="var(--gray-9)"),
        ),
        padding_top="1em",
    )


def longevity_tab() -> rx.Component:
    return rx.box(
        rx.text(
            "A remote parquet file scanned lazily from HuggingFace. "
            "Only fields with fewer than 200 distinct values are offered.",
            margin_bottom="1em",
            color="var(--gray-11)",
        ),
        rx.cond(
            LongevityPivotState.pivot_loaded,
            pivot_table(LongevityPivotState),
            rx.button("Load parquet", on_click=LongevityPivotState.load_data),
        ),
        padding_top="1em",
    )


def index() -> rx.Component:
    return rx.box(
        rx.heading("Pivot Table Demo", size="7", margin_bottom="0.5em"),
        rx.tabs.root(
            rx.tabs.list(
                rx.tabs.trigger("Employees", value="employees"),
                rx.tabs.trigger("Longevity Map (Parquet)", value="parquet"),
            ),
            rx.tabs.content(employee_tab(), value="employees"),
            rx.tabs.content(longevity_tab(), value="parquet"),
            default_value="employees",
        ),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=EmployeePivotState.load_data)
