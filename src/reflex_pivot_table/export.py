"""CSV export of the wide table."""

import datetime

import polars as pl

from reflex_pivot_table.models import NULL_LABEL


def export_filename(today: datetime.date | None = None) -> str:
    """Return the download filename, ``data_YYYY-MM-DD.csv``."""
    if today is None:
        today = datetime.date.today()
    return f"data_{today.isoformat()}.csv"


def to_csv(table: pl.DataFrame) -> str:
    """Serialise *table* as comma-separated text with one header row.

    Nulls in row-key columns are written as ``NA``, matching the column
    labels produced for null column keys.
    """
    return table.write_csv(separator=",", include_header=True, null_value=NULL_LABEL)
