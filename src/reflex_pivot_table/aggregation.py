"""Grouped counts against the data source, and the record-limit guard.

:func:`grouped_counts` only *builds* the lazy query (filter -> group ->
count); nothing is read until :func:`collect_bounded` collects at most
``record_limit + 1`` rows of it.  The extra row is how truncation is
detected without counting the full result.
"""

import time
from collections.abc import Sequence

import polars as pl

from reflex_pivot_table.errors import QueryError
from reflex_pivot_table.models import BoundedResult, check_disjoint
from reflex_pivot_table.predicates import Predicate
from reflex_pivot_table.sources import as_lazyframe

COUNT_COLUMN: str = "n"
COUNT_DTYPE: pl.DataType = pl.UInt64()

_DEFAULT_RECORD_LIMIT: int = 1_000_000


def grouped_counts(
    source: pl.LazyFrame | pl.DataFrame,
    predicate: Predicate,
    row_fields: Sequence[str],
    col_fields: Sequence[str],
) -> pl.LazyFrame:
    """Build the grouped-count query for a pivot layout.

    The predicate is applied first, then rows are grouped by
    ``row_fields + col_fields`` and counted into an ``n`` column.  Groups
    keep the order in which the source first produced them, so the same
    query against the same snapshot always yields rows in the same order.
    With no group keys at all, the query yields one row holding the total
    filtered row count.

    Args:
        source: The data source.
        predicate: Filter built by :func:`build_predicate`.
        row_fields: Ordered row-key field names.
        col_fields: Ordered column-key field names, disjoint from *row_fields*.

    Returns:
        The lazy grouped query (not collected).

    Raises:
        LayoutError: If a field repeats within or across the two sequences.
    """
    check_disjoint(row_fields, col_fields)
    keys = [*row_fields, *col_fields]

    lf = as_lazyframe(source)
    if not predicate.is_empty:
        lf = lf.filter(predicate.to_expr())

    count = pl.len().cast(COUNT_DTYPE).alias(COUNT_COLUMN)
    if not keys:
        return lf.select(count)
    return lf.group_by(keys, maintain_order=True).agg(count)


def collect_bounded(
    query: pl.LazyFrame,
    record_limit: int = _DEFAULT_RECORD_LIMIT,
) -> BoundedResult:
    """Materialise at most *record_limit* rows of a grouped query.

    Rows come back in whatever order the query produces them; none below
    the limit are dropped.  ``truncated`` is set only when the query has
    strictly more than *record_limit* rows.

    Args:
        query: A lazy grouped query from :func:`grouped_counts`.
        record_limit: Maximum number of grouped rows to bring into memory.

    Returns:
        The :class:`BoundedResult`.  The count column is normalised to
        ``UInt64``.

    Raises:
        ValueError: If *record_limit* is not positive.
        QueryError: If the source fails while the query runs.
    """
    if record_limit < 1:
        raise ValueError(f"record_limit must be positive, got {record_limit}")

    t0 = time.perf_counter()
    try:
        df = query.head(record_limit + 1).collect()
    except (pl.exceptions.PolarsError, OSError) as exc:
        raise QueryError(f"Grouped query failed: {exc}") from exc

    truncated = df.height > record_limit
    if truncated:
        df = df.head(record_limit)
    if COUNT_COLUMN in df.columns:
        df = df.with_columns(pl.col(COUNT_COLUMN).cast(COUNT_DTYPE))

    elapsed_ms = (time.perf_counter() - t0) * 1000
    print(
        f"[PivotTable] grouped query: {df.height:,} rows"
        f"{' (truncated)' if truncated else ''} ({elapsed_ms:.1f}ms)"
    )
    return BoundedResult(frame=df, truncated=truncated, record_limit=record_limit)
