"""Tests for the generated polars code and SQL."""

import polars as pl

from reflex_pivot_table import PivotEngine


def _run(code: str, lf):
    namespace = {"lf": lf}
    exec(code, namespace)
    return namespace["df"]


def test_polars_code_reproduces_the_table(shirts, shirts_engine):
    shirts_engine.set_layout(["color"], ["size"])
    shirts_engine.set_chosen("size", ["S", "M"])
    code = shirts_engine.polars_code()
    assert "lf = lf.filter(pl.col('size').is_in(['M', 'S']))" in code
    assert _run(code, shirts).to_dicts() == shirts_engine.recompute().table.to_dicts()


def test_polars_code_without_keys(shirts, shirts_engine):
    code = shirts_engine.polars_code()
    assert "# (no filters)" in code
    assert _run(code, shirts).rows() == [(6,)]


def test_polars_code_without_row_fields(shirts, shirts_engine):
    shirts_engine.set_layout([], ["color"])
    assert _run(shirts_engine.polars_code(), shirts).to_dicts() == [{"red": 5, "blue": 1}]


def test_sql_for_cross_tab(shirts):
    engine = PivotEngine(shirts, record_limit=50)
    engine.set_layout(["color"], ["size"])
    engine.set_chosen("color", ["red"])
    assert engine.sql() == (
        'SELECT "color", "size", COUNT(*) AS n FROM df\n'
        "WHERE \"color\" = 'red'\n"
        'GROUP BY "color", "size"\n'
        "LIMIT 50;"
    )


def test_sql_without_keys(shirts_engine):
    assert shirts_engine.sql("sales") == "SELECT COUNT(*) AS n FROM sales;"


def test_polars_code_matches_engine_with_null_column_keys(orders, orders_engine):
    orders_engine.set_layout(["channel"], ["region"])
    code = orders_engine.polars_code()
    assert ".fill_null('NA')" in code
    assert "maintain_order=True).fill_null(0)" in code
    assert _run(code, orders).to_dicts() == orders_engine.recompute().table.to_dicts()


def test_polars_code_uses_the_field_null_label():
    lf = pl.LazyFrame({"g": ["a", "a"], "c": ["NA", None]})
    engine = PivotEngine(lf)
    engine.set_layout(["g"], ["c"])
    assert _run(engine.polars_code(), lf).to_dicts() == engine.recompute().table.to_dicts()
