"""Long-to-wide reshape of a grouped count result."""

import time
from collections.abc import Collection, Mapping, Sequence

import polars as pl

from reflex_pivot_table.aggregation import COUNT_COLUMN
from reflex_pivot_table.errors import ReshapeInconsistency
from reflex_pivot_table.models import string_labels

COLUMN_KEY_SEPARATOR: str = "_&_"

_KEY_COLUMN: str = "__col_key__"
_ROW_COLUMN: str = "__row_key__"


def column_labels(
    result: pl.DataFrame,
    col_fields: Sequence[str],
    *,
    separator: str = COLUMN_KEY_SEPARATOR,
    reserved: Collection[str] = (),
    null_labels: Mapping[str, str] | None = None,
) -> list[str]:
    """Column label for every row of *result*.

    A label joins the level labels of the *col_fields* values with
    *separator* (nulls take ``null_labels[field]``, default ``"NA"``).
    Distinct value tuples always get distinct labels, and no label equals
    a name in *reserved*.  A label that would clash, because a value
    contains the separator or equals a row field name, is wrapped in
    brackets until it is unique: ``color`` becomes ``[color]``.
    """
    null_labels = null_labels or {}
    parts = [string_labels(result.get_column(c), null_labels.get(c)) for c in col_fields]
    keys = result.select(col_fields).rows()

    taken = set(reserved)
    by_key: dict[tuple, str] = {}
    labels: list[str] = []
    for key, pieces in zip(keys, zip(*parts)):
        label = by_key.get(key)
        if label is None:
            label = separator.join(pieces)
            while label in taken:
                label = f"[{label}]"
            taken.add(label)
            by_key[key] = label
        labels.append(label)
    return labels


def widen(
    result: pl.DataFrame,
    row_fields: Sequence[str],
    col_fields: Sequence[str],
    *,
    separator: str = COLUMN_KEY_SEPARATOR,
    null_labels: Mapping[str, str] | None = None,
) -> pl.DataFrame:
    """Pivot a grouped count result into a row-key x column-key table.

    With no *col_fields* the grouped result already is the final table
    and is returned unchanged.  Otherwise each distinct combination of
    *col_fields* values becomes one count column labelled by
    :func:`column_labels`.  Rows are the distinct *row_fields* tuples
    and both rows and columns appear in the order first encountered.
    Combinations missing from *result* are filled with ``0``.  With no
    *row_fields* the table has a single row.

    Raises:
        ReshapeInconsistency: If a (row key, column key) pair occurs more
            than once, which means the grouping upstream is broken, or if
            polars cannot spread the keys.
    """
    if not col_fields:
        return result

    t0 = time.perf_counter()
    row_keys = list(row_fields)
    key_fields = [*row_keys, *col_fields]
    if result.height and result.select(key_fields).is_duplicated().any():
        raise ReshapeInconsistency(
            "Grouped result has more than one row for the same row/column key; "
            f"row fields={row_keys}, column fields={list(col_fields)}"
        )

    index = row_keys or [_ROW_COLUMN]
    labels = column_labels(
        result, col_fields, separator=separator, reserved=index, null_labels=null_labels
    )
    keyed = result.select(*row_keys, COUNT_COLUMN).with_columns(
        pl.Series(_KEY_COLUMN, labels, dtype=pl.String)
    )
    if not row_keys:
        keyed = keyed.with_columns(pl.lit(0).alias(_ROW_COLUMN))

    if keyed.height == 0:
        wide = keyed.select(index)
    else:
        try:
            wide = keyed.pivot(
                on=_KEY_COLUMN,
                index=index,
                values=COUNT_COLUMN,
                aggregate_function=None,
                maintain_order=True,
                sort_columns=False,
            )
        except pl.exceptions.PolarsError as exc:
            raise ReshapeInconsistency(f"Unable to spread column keys: {exc}") from exc
    value_columns = [c for c in wide.columns if c not in index]
    if value_columns:
        wide = wide.with_columns(pl.col(value_columns).fill_null(0))
    if not row_keys:
        wide = wide.drop(_ROW_COLUMN)

    elapsed_ms = (time.perf_counter() - t0) * 1000
    print(
        f"[PivotTable] reshape: {wide.height:,} rows x {len(value_columns)} "
        f"column keys ({elapsed_ms:.1f}ms)"
    )
    return wide
