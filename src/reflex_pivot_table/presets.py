"""Save and restore a pivot configuration (layout + filters) as JSON.

A preset has the shape::

    {
        "row_fields": ["color"],
        "col_fields": ["size"],
        "filters": {"color": ["red", "blue"]}
    }

Filter values are stored as level labels, the same strings the filter
dialog sends.
"""

import json
from typing import Any

from reflex_pivot_table.errors import InvalidLevelError, LayoutError, UnknownFieldError
from reflex_pivot_table.models import PivotLayout
from reflex_pivot_table.selection import SelectionState


def to_preset(selection: SelectionState, layout: PivotLayout) -> dict[str, Any]:
    return {
        "row_fields": list(layout.row_fields),
        "col_fields": list(layout.col_fields),
        "filters": selection.to_dict(),
    }


def dumps_preset(selection: SelectionState, layout: PivotLayout) -> str:
    return json.dumps(to_preset(selection, layout), indent=2, ensure_ascii=False)


def apply_preset(
    preset: dict[str, Any],
    selection: SelectionState,
    layout: PivotLayout,
) -> None:
    """Validate *preset* in full, then replace *selection* and *layout* with it.

    Nothing is changed if any part of the preset is invalid.

    Raises:
        LayoutError: If the preset is malformed or places a field twice.
        UnknownFieldError: If it names a field outside the catalog.
        InvalidLevelError: If a filter value is not a level of its field.
    """
    catalog = selection.catalog
    rows = preset.get("row_fields", [])
    cols = preset.get("col_fields", [])
    filters = preset.get("filters", {})
    if not isinstance(rows, list) or not isinstance(cols, list) or not isinstance(filters, dict):
        raise LayoutError("Preset must contain lists 'row_fields', 'col_fields' and a 'filters' object")

    new_layout = PivotLayout(rows, cols)
    for name in new_layout.group_keys:
        if name not in catalog:
            raise UnknownFieldError(name)

    for name, values in filters.items():
        spec = catalog[name]
        if not isinstance(values, list):
            raise LayoutError(f"Preset filter for {name!r} must be a list of levels")
        rejected = [v for v in values if not spec.resolve(v)[0]]
        if rejected:
            raise InvalidLevelError(name, rejected)

    selection.clear_all()
    for name, values in filters.items():
        selection.set_chosen(name, values)
    layout.row_fields = new_layout.row_fields
    layout.col_fields = new_layout.col_fields


def loads_preset(text: str, selection: SelectionState, layout: PivotLayout) -> None:
    """Parse a JSON preset and apply it with :func:`apply_preset`."""
    try:
        preset = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LayoutError(f"Preset is not valid JSON: {exc}") from exc
    if not isinstance(preset, dict):
        raise LayoutError("Preset must be a JSON object")
    apply_preset(preset, selection, layout)
