"""End-to-end tests for PivotEngine.recompute and request ordering."""

import polars as pl
import pytest

from reflex_pivot_table import (
    InvalidLevelError,
    PivotEngine,
    UnknownFieldError,
    build_field_catalog,
)
from reflex_pivot_table.engine import REFRESH_FAILED_MESSAGE


def test_cross_tab(shirts_engine):
    shirts_engine.place("color", "rows")
    shirts_engine.place("size", "cols")
    view = shirts_engine.recompute()
    assert view.table.to_dicts() == [
        {"color": "red", "S": 3, "M": 2},
        {"color": "blue", "S": 1, "M": 0},
    ]
    assert not view.truncated
    assert view.messages == []
    assert shirts_engine.view is view


def test_filter_keeps_only_matching_rows(shirts_engine):
    shirts_engine.set_layout(["color"], ["size"])
    shirts_engine.set_chosen("color", ["red"])
    view = shirts_engine.recompute()
    assert view.table.to_dicts() == [{"color": "red", "S": 3, "M": 2}]


def test_no_column_fields_returns_long_table(shirts_engine):
    shirts_engine.set_layout(["color", "size"], [])
    view = shirts_engine.recompute()
    assert view.table.columns == ["color", "size", "n"]
    assert view.table.height == 3


def test_record_limit_truncates_with_warning():
    lf = pl.LazyFrame({"k": ["a", "b", "c", "d", "e"]})
    engine = PivotEngine(lf, record_limit=2)
    engine.place("k", "rows")
    view = engine.recompute()
    assert view.table.height == 2
    assert view.truncated
    assert view.warning == "Warning: Only showing first 2 rows."
    assert view.messages == ["Warning: Only showing first 2 rows."]


def test_no_layout_gives_total(shirts_engine):
    view = shirts_engine.recompute()
    assert view.table.rows() == [(6,)]


def test_filtering_is_independent_of_layout(orders_engine):
    orders_engine.set_chosen("region", ["north"])
    orders_engine.set_layout(["channel"], [])
    view = orders_engine.recompute()
    assert dict(view.table.rows()) == {"web": 2, "store": 1}


def test_null_level_filter(orders_engine):
    orders_engine.set_chosen("region", ["NA"])
    orders_engine.place("channel", "rows")
    assert orders_engine.recompute().table.rows() == [("store", 1)]


def test_layout_changes_recompute_from_scratch(shirts_engine):
    shirts_engine.set_layout(["color"], ["size"])
    first = shirts_engine.recompute()
    shirts_engine.place("color", "cols")
    second = shirts_engine.recompute()
    assert first.table.columns == ["color", "S", "M"]
    assert second.table.columns == ["S_&_red", "M_&_red", "S_&_blue"]
    assert second.request > first.request


def test_unknown_fields_are_rejected(orders_engine):
    with pytest.raises(UnknownFieldError):
        orders_engine.place("order_id", "rows")
    with pytest.raises(UnknownFieldError):
        orders_engine.set_layout(["region"], ["order_id"])
    with pytest.raises(InvalidLevelError):
        orders_engine.set_chosen("channel", ["phone"])


def test_unplaced_fields(orders_engine):
    orders_engine.set_layout(["year"], ["channel"])
    assert orders_engine.unplaced_fields == ["region"]


def test_invalid_record_limit(shirts):
    with pytest.raises(ValueError):
        PivotEngine(shirts, record_limit=0)


def _failing_engine() -> PivotEngine:
    good = pl.LazyFrame({"x": ["1", "2", "2"]})
    engine = PivotEngine(good)
    engine.place("x", "rows")
    return engine


def test_query_failure_keeps_last_good_table():
    engine = _failing_engine()
    good = engine.recompute()
    engine.source = pl.LazyFrame({"x": ["a", "b"]}).with_columns(pl.col("x").cast(pl.Int64))
    failed = engine.recompute()
    assert failed.error == REFRESH_FAILED_MESSAGE
    assert failed.table.equals(good.table)
    assert REFRESH_FAILED_MESSAGE in failed.messages
    assert engine.view is failed


def test_query_failure_before_any_table():
    good = pl.LazyFrame({"x": ["1", "2"]})
    bad = pl.LazyFrame({"x": ["a", "b"]}).with_columns(pl.col("x").cast(pl.Int64))
    engine = PivotEngine(bad, catalog=build_field_catalog(good))
    engine.place("x", "rows")
    view = engine.recompute()
    assert view.error == REFRESH_FAILED_MESSAGE
    assert view.table.height == 0


def test_stale_result_is_discarded(shirts_engine):
    shirts_engine.place("color", "rows")
    slow = shirts_engine.begin_request()
    slow_view = shirts_engine.compute(slow)

    shirts_engine.place("size", "cols")
    fast = shirts_engine.begin_request()
    fast_view = shirts_engine.compute(fast)

    assert shirts_engine.complete_request(fast, fast_view)
    assert not shirts_engine.complete_request(slow, slow_view)
    assert shirts_engine.view is fast_view
    assert not shirts_engine.is_current(slow)


def test_query_is_lazy(shirts_engine):
    shirts_engine.set_layout(["color"], [])
    assert isinstance(shirts_engine.query(), pl.LazyFrame)


def test_to_csv_recomputes_when_needed(shirts_engine):
    shirts_engine.set_layout(["color"], ["size"])
    assert shirts_engine.to_csv() == "color,S,M\nred,3,2\nblue,1,0\n"


def test_column_label_matching_a_row_field_still_renders():
    engine = PivotEngine(pl.LazyFrame({"color": ["red", "blue"], "kind": ["color", "x"]}))
    engine.set_layout(["color"], ["kind"])
    view = engine.recompute()
    assert view.error is None
    assert view.table.columns == ["color", "[color]", "x"]


def test_null_level_next_to_literal_na():
    engine = PivotEngine(pl.LazyFrame({"g": ["a", "a"], "c": ["NA", None]}))
    engine.set_layout(["g"], ["c"])
    view = engine.recompute()
    assert view.error is None
    assert view.table.to_dicts() == [{"g": "a", "NA": 1, "<NA>": 1}]

    engine.set_chosen("c", ["<NA>"])
    assert engine.recompute().table.to_dicts() == [{"g": "a", "<NA>": 1}]
