"""CLI for reflex-pivot-table -- pivot tabular files in the browser or headless.

Usage::

    # Open an interactive pivot table for a CSV / Parquet / ... file
    reflex-pivot-table view sales.parquet

    # List the fields that can be pivoted
    reflex-pivot-table catalog sales.parquet --max-levels 200

    # Compute a cross-tab without a browser and save it as CSV
    reflex-pivot-table pivot sales.parquet --rows region --cols year \\
        --filter channel=web,store --output region_by_year.csv
"""

import contextlib
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Optional

import typer

from reflex_pivot_table.aggregation import _DEFAULT_RECORD_LIMIT
from reflex_pivot_table.catalog import _DEFAULT_MAX_LEVELS, build_field_catalog
from reflex_pivot_table.engine import PivotEngine
from reflex_pivot_table.errors import PivotError
from reflex_pivot_table.export import to_csv
from reflex_pivot_table.sources import is_remote, scan_source

app = typer.Typer(
    name="reflex-pivot-table",
    help="Build count cross-tabs over tabular files, interactively or headless.",
    no_args_is_help=True,
)


def _split_fields(value: str | None) -> list[str]:
    """Split a comma-separated option into field names."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_filter(item: str) -> tuple[str, list[str]]:
    """Parse ``field=level1,level2`` into its field name and levels."""
    field, sep, levels = item.partition("=")
    if not sep or not field.strip():
        raise typer.BadParameter(f"Expected FIELD=LEVEL[,LEVEL...], got {item!r}")
    return field.strip(), [level for level in levels.split(",") if level != ""]


def _open_source(location: str):
    try:
        return scan_source(location)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)


def _build_app_code(
    location: str,
    max_levels: int,
    record_limit: int,
    height: str,
    title: str,
) -> str:
    """Generate the Reflex app module source code."""
    safe_location = location.replace("\\", "\\\\").replace('"', '\\"')

    # Use placeholder substitution to avoid escaping nightmares.
    template = _APP_TEMPLATE
    template = template.replace("__FILENAME__", Path(location).name)
    template = template.replace("__SAFE_LOCATION__", safe_location)
    template = template.replace("__MAX_LEVELS__", str(max_levels))
    template = template.replace("__RECORD_LIMIT__", str(record_limit))
    template = template.replace("__TITLE__", title)
    template = template.replace("__HEIGHT__", height)
    return template


# ---------------------------------------------------------------------------
# App template -- uses __PLACEHOLDER__ tokens for dynamic parts.
# ---------------------------------------------------------------------------

_APP_TEMPLATE = '''"""Auto-generated pivot app for: __FILENAME__"""

import reflex as rx

from reflex_pivot_table import PivotTableMixin, pivot_table, scan_source


class PivotState(PivotTableMixin, rx.State):
    """Viewer state using PivotTableMixin."""

    def load_data(self):
        lf = scan_source("__SAFE_LOCATION__")
        yield from self.set_pivot_source(
            lf, max_levels=__MAX_LEVELS__, record_limit=__RECORD_LIMIT__
        )


def index() -> rx.Component:
    return rx.box(
        rx.heading("__TITLE__", size="6", margin_bottom="0.5em"),
        rx.cond(
            PivotState.pivot_loaded,
            pivot_table(PivotState, height="__HEIGHT__"),
            rx.vstack(
                rx.foreach(PivotState.pivot_warnings, lambda m: rx.text(m, color="red")),
                rx.text("Loading...", color="var(--gray-9)"),
            ),
        ),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=PivotState.load_data)
'''


@app.command()
def view(
    file: Annotated[str, typer.Argument(help="Path or URL of the data file (CSV, TSV, Parquet, JSON, IPC)")],
    max_levels: Annotated[int, typer.Option("--max-levels", help="Skip fields with this many distinct values or more")] = _DEFAULT_MAX_LEVELS,
    record_limit: Annotated[int, typer.Option("--record-limit", "-n", help="Maximum grouped rows to load")] = _DEFAULT_RECORD_LIMIT,
    height: Annotated[str, typer.Option("--height", "-h", help="CSS height of the table")] = "calc(100vh - 400px)",
    port: Annotated[int, typer.Option("--port", "-p", help="Port for the Reflex frontend")] = 3000,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Page title")] = None,
) -> None:
    """Open an interactive pivot table for a data file in the browser."""
    if is_remote(file):
        location = file
    else:
        path = Path(file).resolve()
        if not path.exists():
            typer.echo(f"Error: file not found: {path}", err=True)
            raise typer.Exit(code=1)
        location = str(path)

    if title is None:
        title = f"{Path(location).name} -- Pivot Table"

    app_code = _build_app_code(location, max_levels, record_limit, height, title)

    # Create a temporary Reflex app directory.
    tmp_dir = Path(tempfile.mkdtemp(prefix="pivot_viewer_"))
    app_name = "pivot_app"
    app_pkg = tmp_dir / app_name
    app_pkg.mkdir()
    (app_pkg / "__init__.py").write_text("")
    (app_pkg / f"{app_name}.py").write_text(app_code)

    rxconfig_code = f"""import reflex as rx
config = rx.Config(app_name="{app_name}", frontend_port={port})
"""
    (tmp_dir / "rxconfig.py").write_text(rxconfig_code)

    typer.echo(f"Launching pivot table for: {location}")
    typer.echo(f"Max levels: {max_levels} | Record limit: {record_limit} | Port: {port}")

    os.chdir(tmp_dir)

    # Step 1: initialise the Reflex project (creates .web/ with node_modules).
    # We use subprocess because reflex's CLI calls sys.exit() on completion.
    typer.echo("Initializing Reflex project...")
    subprocess.run(
        [sys.executable, "-m", "reflex", "init"],
        cwd=str(tmp_dir),
        check=True,
    )

    # Step 2: run the app via exec (replaces this process).
    typer.echo("Starting pivot table...")
    os.execvp(sys.executable, [sys.executable, "-m", "reflex", "run"])


@app.command()
def catalog(
    file: Annotated[str, typer.Argument(help="Path or URL of the data file")],
    max_levels: Annotated[int, typer.Option("--max-levels", help="Skip fields with this many distinct values or more")] = _DEFAULT_MAX_LEVELS,
) -> None:
    """List the fields that can be used as pivot rows, columns and filters."""
    lf = _open_source(file)
    try:
        with contextlib.redirect_stdout(sys.stderr):
            fields = build_field_catalog(lf, max_levels=max_levels)
    except PivotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if not fields:
        typer.echo(f"No field has fewer than {max_levels} distinct values.")
        return
    width = max(len(f.name) for f in fields)
    for f in fields:
        typer.echo(f"{f.name.ljust(width)}  {f.n_levels:>6} levels")


@app.command()
def pivot(
    file: Annotated[str, typer.Argument(help="Path or URL of the data file")],
    rows: Annotated[Optional[str], typer.Option("--rows", "-r", help="Comma-separated row fields")] = None,
    cols: Annotated[Optional[str], typer.Option("--cols", "-c", help="Comma-separated column fields")] = None,
    filters: Annotated[Optional[list[str]], typer.Option("--filter", "-f", help="FIELD=LEVEL[,LEVEL...]; repeatable")] = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write the CSV here instead of stdout")] = None,
    max_levels: Annotated[int, typer.Option("--max-levels", help="Skip fields with this many distinct values or more")] = _DEFAULT_MAX_LEVELS,
    record_limit: Annotated[int, typer.Option("--record-limit", "-n", help="Maximum grouped rows to load")] = _DEFAULT_RECORD_LIMIT,
) -> None:
    """Compute a count cross-tab without a browser and emit it as CSV."""
    parsed = [_parse_filter(item) for item in filters or []]
    lf = _open_source(file)

    try:
        # Engine timing lines go to stderr so stdout stays valid CSV.
        with contextlib.redirect_stdout(sys.stderr):
            engine = PivotEngine(lf, max_levels=max_levels, record_limit=record_limit)
            engine.set_layout(_split_fields(rows), _split_fields(cols))
            for field, levels in parsed:
                engine.set_chosen(field, levels)
            token = engine.begin_request()
            result = engine.compute(token)
            engine.complete_request(token, result)
    except PivotError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if result.warning:
        typer.echo(result.warning, err=True)

    text = to_csv(result.table)
    if output is None:
        typer.echo(text, nl=False)
        return
    output.write_text(text)
    typer.echo(f"Wrote {result.table.height:,} rows to {output}", err=True)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
