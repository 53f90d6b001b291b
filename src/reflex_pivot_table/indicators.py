"""Shade/unshade signals mirroring which fields are filtering."""

from collections.abc import Callable
from typing import NamedTuple

from reflex_pivot_table.selection import SelectionState


class IndicatorSignal(NamedTuple):
    field: str
    shaded: bool

    @property
    def action(self) -> str:
        return "shade" if self.shaded else "unshade"


def indicator_signals(selection: SelectionState) -> list[IndicatorSignal]:
    """One signal per catalogued field, in catalog order."""
    return [
        IndicatorSignal(name, selection.is_filtering(name))
        for name in selection.catalog.names
    ]


def sync_indicators(
    selection: SelectionState,
    emit: Callable[[IndicatorSignal], None],
) -> list[IndicatorSignal]:
    """Push a signal for *every* field to *emit* and return them.

    Called after any selection change.  All fields are re-sent, not only
    the one that changed, so the UI can never keep a stale shade.
    """
    signals = indicator_signals(selection)
    for signal in signals:
        emit(signal)
    return signals
