"""Field catalog: one scan of the source to find pivotable fields and their levels."""

import time

import polars as pl

from reflex_pivot_table.errors import CatalogError
from reflex_pivot_table.models import Field, FieldCatalog, string_labels
from reflex_pivot_table.sources import as_lazyframe

_DEFAULT_MAX_LEVELS: int = 1000


def _is_unpivotable_dtype(dtype: pl.DataType) -> bool:
    """Return True for dtypes whose values cannot serve as filter levels."""
    return isinstance(dtype, (pl.List, pl.Array, pl.Struct, pl.Object, pl.Binary))


def _distinct_levels(lf: pl.LazyFrame, name: str) -> pl.Series:
    """Collect the sorted distinct values of one column (nulls last).

    Only the single column is scanned (projection pushdown).
    """
    return (
        lf.select(pl.col(name).unique())
        .collect()
        .get_column(name)
        .sort(nulls_last=True)
    )


def build_field_catalog(
    source: pl.LazyFrame | pl.DataFrame,
    *,
    max_levels: int = _DEFAULT_MAX_LEVELS,
) -> FieldCatalog:
    """Scan *source* once and return the fields usable for filtering and pivoting.

    Distinct counts for every column are computed in a single query.  A
    field is kept only when its count (a null counts as one level) is
    strictly below *max_levels*; its levels are then pulled out with one
    single-column query each.  This is the only place where distinct
    values are materialised, and *max_levels* bounds its cost.

    Nested and binary columns (List, Array, Struct, Object, Binary) are
    skipped.

    Args:
        source: A polars LazyFrame, or a DataFrame which is made lazy.
        max_levels: Fields with this many distinct values or more are
            excluded from the catalog.

    Returns:
        The :class:`FieldCatalog`, in schema order.

    Raises:
        CatalogError: If the source cannot be reached or introspected.
            No partial catalog is returned.
    """
    lf = as_lazyframe(source)
    t0 = time.perf_counter()
    try:
        schema = lf.collect_schema()
        candidates = [name for name, dtype in schema.items() if not _is_unpivotable_dtype(dtype)]
        counts: dict[str, int] = {}
        if candidates:
            counts = lf.select(pl.col(candidates).n_unique()).collect().row(0, named=True)

        fields: list[Field] = []
        for name in candidates:
            n_levels = int(counts[name])
            if n_levels >= max_levels:
                continue
            values = _distinct_levels(lf, name)
            fields.append(
                Field(
                    name=name,
                    n_levels=n_levels,
                    levels=tuple(values.to_list()),
                    labels=tuple(string_labels(values)),
                )
            )
    except (pl.exceptions.PolarsError, OSError) as exc:
        raise CatalogError(f"Unable to build the field catalog: {exc}") from exc

    elapsed_ms = (time.perf_counter() - t0) * 1000
    print(
        f"[PivotTable] catalog: {len(fields)} of {len(schema)} fields "
        f"below {max_levels} levels ({elapsed_ms:.1f}ms)"
    )
    return FieldCatalog(fields, max_levels=max_levels)
