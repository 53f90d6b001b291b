"""Readable polars code and SQL for the current pivot query.

Shown in the code panel under the table so users can reproduce the
exact grouped query outside the app.
"""

from collections.abc import Mapping, Sequence

from reflex_pivot_table.aggregation import COUNT_COLUMN
from reflex_pivot_table.models import NULL_LABEL
from reflex_pivot_table.predicates import Predicate, _quote_ident
from reflex_pivot_table.reshape import COLUMN_KEY_SEPARATOR


def generate_polars_code(
    predicate: Predicate,
    row_fields: Sequence[str],
    col_fields: Sequence[str],
    record_limit: int,
    *,
    separator: str = COLUMN_KEY_SEPARATOR,
    null_labels: Mapping[str, str] | None = None,
) -> str:
    """Generate polars code that rebuilds the pivot table.

    The code assumes a variable ``lf`` (LazyFrame) already exists.

    Args:
        predicate: The current filter predicate.
        row_fields: Ordered row-key fields.
        col_fields: Ordered column-key fields.
        record_limit: Maximum number of grouped rows collected.
        separator: Column-key separator used by the reshape.
        null_labels: Label of the null level per column field (default ``"NA"``).

    Returns:
        A multi-line string of valid Python code.
    """
    keys = [*row_fields, *col_fields]
    lines: list[str] = []
    lines.append("import polars as pl")
    lines.append("")
    lines.append("# Apply the filters you selected:")
    code = predicate.to_code()
    if code:
        lines.append(f"lf = lf.filter({code})")
    else:
        lines.append("# (no filters)")

    lines.append("")
    lines.append("# Count rows per group and collect at most the record limit:")
    if keys:
        lines.append(
            f"df = lf.group_by({keys!r}, maintain_order=True)"
            f'.agg(pl.len().alias("{COUNT_COLUMN}")).head({record_limit}).collect()'
        )
    else:
        lines.append(f'df = lf.select(pl.len().alias("{COUNT_COLUMN}")).collect()')

    if col_fields:
        null_labels = null_labels or {}
        parts = ", ".join(
            f"pl.col({c!r}).cast(pl.String).fill_null({null_labels.get(c, NULL_LABEL)!r})"
            for c in col_fields
        )
        lines.append("")
        lines.append("# Spread the column keys into one count column each:")
        lines.append(
            f"df = df.with_columns(pl.concat_str([{parts}], separator={separator!r})"
            f'.alias("col_key")).drop({list(col_fields)!r})'
        )
        if row_fields:
            lines.append(
                f'df = df.pivot(on="col_key", index={list(row_fields)!r}, '
                f'values="{COUNT_COLUMN}", maintain_order=True).fill_null(0)'
            )
        else:
            lines.append(
                'df = df.with_columns(pl.lit(0).alias("row")).pivot('
                f'on="col_key", index="row", values="{COUNT_COLUMN}", maintain_order=True).drop("row")'
            )
    return "\n".join(lines)


def generate_sql(
    predicate: Predicate,
    row_fields: Sequence[str],
    col_fields: Sequence[str],
    record_limit: int,
    *,
    table_name: str = "df",
) -> str:
    """Generate the grouped-count query as SQL.

    Returns the long-format (pre-reshape) query, which can be pasted into
    DuckDB, Postgres, SQLite or any SQL tool.  The SQL assumes a table
    or view named *table_name* already exists.
    """
    keys = [_quote_ident(k) for k in [*row_fields, *col_fields]]
    select = ", ".join([*keys, f"COUNT(*) AS {COUNT_COLUMN}"])
    parts: list[str] = [f"SELECT {select} FROM {table_name}"]

    where = predicate.to_sql()
    if where:
        parts.append(f"WHERE {where}")
    if keys:
        parts.append(f"GROUP BY {', '.join(keys)}")
        parts.append(f"LIMIT {record_limit}")
    return "\n".join(parts) + ";"
