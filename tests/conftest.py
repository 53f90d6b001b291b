"""Shared fixtures: small polars sources used across the engine tests."""

import polars as pl
import pytest

from reflex_pivot_table import PivotEngine, build_field_catalog


def _repeat(rows: list[tuple[str, str]], counts: list[int]) -> dict[str, list[str]]:
    colors: list[str] = []
    sizes: list[str] = []
    for (color, size), count in zip(rows, counts):
        colors.extend([color] * count)
        sizes.extend([size] * count)
    return {"color": colors, "size": sizes}


@pytest.fixture()
def shirts() -> pl.LazyFrame:
    """(red, S) x3, (red, M) x2, (blue, S) x1."""
    data = _repeat([("red", "S"), ("red", "M"), ("blue", "S")], [3, 2, 1])
    return pl.LazyFrame(data)


@pytest.fixture()
def orders() -> pl.LazyFrame:
    """Mixed dtypes, a null level and one high-cardinality column."""
    return pl.LazyFrame(
        {
            "region": ["north", "south", "north", "east", None, "south", "north", "east"],
            "year": [2021, 2021, 2022, 2022, 2022, 2023, 2023, 2023],
            "channel": ["web", "store", "web", "web", "store", "web", "store", "store"],
            "order_id": [f"o-{i}" for i in range(8)],
        }
    )


@pytest.fixture()
def shirts_engine(shirts: pl.LazyFrame) -> PivotEngine:
    return PivotEngine(shirts)


@pytest.fixture()
def orders_engine(orders: pl.LazyFrame) -> PivotEngine:
    return PivotEngine(orders, max_levels=5)


@pytest.fixture()
def shirts_catalog(shirts: pl.LazyFrame):
    return build_field_catalog(shirts)
