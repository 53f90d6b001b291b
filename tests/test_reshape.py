"""Tests for the long-to-wide reshape."""

import polars as pl
import pytest

from reflex_pivot_table import (
    Empty,
    ReshapeInconsistency,
    build_field_catalog,
    collect_bounded,
    grouped_counts,
    widen,
)
from reflex_pivot_table.reshape import column_labels


def _grouped(source, rows, cols) -> pl.DataFrame:
    return collect_bounded(grouped_counts(source, Empty(), rows, cols)).frame


def test_cross_tab_with_zero_fill(shirts):
    wide = widen(_grouped(shirts, ["color"], ["size"]), ["color"], ["size"])
    assert wide.columns == ["color", "S", "M"]
    assert wide.to_dicts() == [
        {"color": "red", "S": 3, "M": 2},
        {"color": "blue", "S": 1, "M": 0},
    ]


def test_no_column_fields_is_identity(shirts):
    grouped = _grouped(shirts, ["color", "size"], [])
    assert widen(grouped, ["color", "size"], []) is grouped


def test_no_row_fields_gives_single_row(shirts):
    wide = widen(_grouped(shirts, [], ["size"]), [], ["size"])
    assert wide.columns == ["S", "M"]
    assert wide.rows() == [(4, 2)]


def test_composite_column_keys_use_separator(shirts):
    wide = widen(_grouped(shirts, [], ["color", "size"]), [], ["color", "size"])
    assert wide.columns == ["red_&_S", "red_&_M", "blue_&_S"]


def test_custom_separator(shirts):
    grouped = _grouped(shirts, [], ["color", "size"])
    wide = widen(grouped, [], ["color", "size"], separator=" / ")
    assert wide.columns == ["red / S", "red / M", "blue / S"]


def test_null_column_key_is_labelled_na(orders):
    wide = widen(_grouped(orders, ["channel"], ["region"]), ["channel"], ["region"])
    assert "NA" in wide.columns
    assert wide.filter(pl.col("channel") == "store").get_column("NA").to_list() == [1]


def test_cells_sum_to_grouped_counts(orders):
    grouped = _grouped(orders, ["year"], ["region", "channel"])
    wide = widen(grouped, ["year"], ["region", "channel"])
    value_columns = [c for c in wide.columns if c != "year"]
    assert wide.select(pl.sum_horizontal(value_columns)).to_series().sum() == grouped.get_column("n").sum()
    assert wide.height == grouped.get_column("year").n_unique()


def test_empty_result_keeps_row_columns(shirts):
    grouped = collect_bounded(
        grouped_counts(shirts.filter(pl.col("color") == "green"), Empty(), ["color"], ["size"])
    ).frame
    wide = widen(grouped, ["color"], ["size"])
    assert wide.height == 0
    assert wide.columns == ["color"]


def test_duplicate_keys_are_rejected():
    broken = pl.DataFrame(
        {"color": ["red", "red"], "size": ["S", "S"], "n": [1, 2]},
        schema_overrides={"n": pl.UInt64},
    )
    with pytest.raises(ReshapeInconsistency):
        widen(broken, ["color"], ["size"])


def test_label_equal_to_a_row_field_is_bracketed():
    lf = pl.LazyFrame({"color": ["red", "blue"], "kind": ["color", "x"]})
    wide = widen(_grouped(lf, ["color"], ["kind"]), ["color"], ["kind"])
    assert wide.columns == ["color", "[color]", "x"]
    assert wide.rows() == [("red", 1, 0), ("blue", 0, 1)]


def test_separator_inside_values_keeps_keys_apart():
    lf = pl.LazyFrame({"a": ["x_&_y", "x"], "b": ["z", "y_&_z"]})
    wide = widen(_grouped(lf, [], ["a", "b"]), [], ["a", "b"])
    assert wide.columns == ["x_&_y_&_z", "[x_&_y_&_z]"]
    assert wide.rows() == [(1, 1)]


def test_null_and_literal_na_get_separate_columns():
    lf = pl.LazyFrame({"g": ["a", "a"], "c": ["NA", None]})
    grouped = _grouped(lf, ["g"], ["c"])
    assert widen(grouped, ["g"], ["c"]).columns == ["g", "NA", "<NA>"]
    wide = widen(grouped, ["g"], ["c"], null_labels={"c": "(missing)"})
    assert wide.to_dicts() == [{"g": "a", "NA": 1, "(missing)": 1}]


def test_headers_use_catalog_labels():
    lf = pl.LazyFrame({"active": [True, False, True]})
    wide = widen(_grouped(lf, [], ["active"]), [], ["active"])
    assert set(wide.columns) == set(build_field_catalog(lf)["active"].labels)
    assert wide.columns == ["true", "false"]


def test_column_labels_are_stable_per_key():
    grouped = pl.DataFrame({"r": ["a", "b", "a"], "c": ["k", "k", "m"], "n": [1, 2, 3]})
    assert column_labels(grouped, ["c"]) == ["k", "k", "m"]
