"""Data source helpers: lazy file scanning and LazyFrame coercion."""

from pathlib import Path

import polars as pl

_REMOTE_PREFIXES: tuple[str, ...] = (
    "s3://",
    "s3a://",
    "gs://",
    "gcs://",
    "az://",
    "abfs://",
    "hf://",
    "http://",
    "https://",
)


def as_lazyframe(data: pl.LazyFrame | pl.DataFrame) -> pl.LazyFrame:
    """Return *data* as a LazyFrame, wrapping an in-memory DataFrame if needed."""
    return data.lazy() if isinstance(data, pl.DataFrame) else data


def is_remote(location: str | Path) -> bool:
    """Return True if *location* is a URL that polars scans without a local file."""
    return isinstance(location, str) and location.lower().startswith(_REMOTE_PREFIXES)


def scan_source(location: str | Path) -> pl.LazyFrame:
    """Open a tabular file or URL as a LazyFrame without reading it.

    Auto-detects the format from the extension:

    * ``.parquet`` / ``.pq`` -- ``pl.scan_parquet()``
    * ``.csv`` -- ``pl.scan_csv()``
    * ``.tsv`` -- ``pl.scan_csv(separator="\\t")``
    * ``.json`` -- ``pl.read_json().lazy()`` (no streaming scan)
    * ``.ndjson`` / ``.jsonl`` -- ``pl.scan_ndjson()``
    * ``.ipc`` / ``.arrow`` / ``.feather`` -- ``pl.scan_ipc()``

    Remote locations (``s3://``, ``hf://``, ``https://`` ...) are passed
    straight to the scanner, so grouping and counting are pushed down to
    the remote scan instead of downloading the table first.

    Args:
        location: Local path or remote URL.

    Returns:
        A lazy scan of the source.

    Raises:
        FileNotFoundError: If *location* is a local path that does not exist.
        ValueError: If the extension is not recognised.
    """
    remote = is_remote(location)
    if remote:
        target: str | Path = str(location)
        suffix = Path(str(location).split("?", 1)[0]).suffix.lower()
    else:
        target = Path(location).resolve()
        if not target.exists():
            raise FileNotFoundError(f"File not found: {target}")
        suffix = target.suffix.lower()

    if suffix in (".parquet", ".pq"):
        return pl.scan_parquet(target)
    if suffix == ".csv":
        return pl.scan_csv(target)
    if suffix == ".tsv":
        return pl.scan_csv(target, separator="\t")
    if suffix == ".json":
        return pl.read_json(target).lazy()
    if suffix in (".ndjson", ".jsonl"):
        return pl.scan_ndjson(target)
    if suffix in (".ipc", ".arrow", ".feather"):
        return pl.scan_ipc(target)

    raise ValueError(
        f"Unsupported file extension: {suffix!r}. "
        "Supported: .parquet, .pq, .csv, .tsv, .json, .ndjson, .jsonl, "
        ".ipc, .arrow, .feather"
    )
