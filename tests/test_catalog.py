"""Tests for the field catalog scan."""

import datetime

import polars as pl
import pytest

from reflex_pivot_table import CatalogError, UnknownFieldError, build_field_catalog


def test_levels_are_sorted_and_counted(shirts):
    catalog = build_field_catalog(shirts)
    assert catalog.names == ["color", "size"]
    assert catalog["color"].levels == ("blue", "red")
    assert catalog["color"].n_levels == 2
    assert catalog["size"].levels == ("M", "S")


def test_max_levels_is_an_exclusive_bound(shirts):
    assert build_field_catalog(shirts, max_levels=2).names == []
    assert build_field_catalog(shirts, max_levels=3).names == ["color", "size"]


def test_high_cardinality_field_is_excluded(orders):
    catalog = build_field_catalog(orders, max_levels=5)
    assert "order_id" not in catalog
    assert catalog.names == ["region", "year", "channel"]
    for field in catalog:
        assert field.n_levels < catalog.max_levels
        assert len(field.levels) == field.n_levels


def test_null_counts_as_a_level_and_sorts_last(orders):
    region = build_field_catalog(orders, max_levels=5)["region"]
    assert region.n_levels == 4
    assert region.levels == ("east", "north", "south", None)
    assert region.labels == ("east", "north", "south", "NA")


def test_nested_columns_are_skipped():
    lf = pl.LazyFrame({"tags": [["a"], ["b", "c"]], "kind": ["x", "y"]})
    assert build_field_catalog(lf).names == ["kind"]


def test_dataframe_source_is_accepted():
    df = pl.DataFrame({"flag": [True, False, True]})
    catalog = build_field_catalog(df)
    assert catalog["flag"].levels == (False, True)
    assert catalog["flag"].labels == ("false", "true")


def test_unknown_field_lookup(shirts_catalog):
    with pytest.raises(UnknownFieldError) as info:
        shirts_catalog["weight"]
    assert "weight" in str(info.value)


def test_failing_source_raises_catalog_error():
    lf = pl.LazyFrame({"x": ["a", "b"]}).with_columns(pl.col("x").cast(pl.Int64))
    with pytest.raises(CatalogError):
        build_field_catalog(lf)


def test_resolve_accepts_labels_for_non_string_levels(orders):
    year = build_field_catalog(orders, max_levels=5)["year"]
    assert year.resolve(2022) == (True, 2022)
    assert year.resolve("2022") == (True, 2022)
    assert year.resolve("1999") == (False, "1999")


def test_null_label_never_collides_with_a_string_level():
    lf = pl.LazyFrame({"code": ["NA", None, "x", "NA"]})
    code = build_field_catalog(lf)["code"]
    assert code.levels == ("NA", "x", None)
    assert code.labels == ("NA", "x", "<NA>")
    assert code.null_label == "<NA>"
    assert code.resolve("NA") == (True, "NA")
    assert code.resolve("<NA>") == (True, None)


def test_labels_follow_the_polars_string_cast():
    lf = pl.LazyFrame({"day": [datetime.date(2024, 5, 1)], "ratio": [0.5]})
    catalog = build_field_catalog(lf)
    assert catalog["day"].labels == ("2024-05-01",)
    assert catalog["ratio"].labels == ("0.5",)
    assert catalog["day"].resolve("2024-05-01") == (True, datetime.date(2024, 5, 1))


def test_binary_columns_are_skipped():
    lf = pl.LazyFrame({"blob": [b"\x00", b"\x01"], "kind": ["x", "y"]})
    assert build_field_catalog(lf).names == ["kind"]
