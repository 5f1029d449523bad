#!/usr/bin/env python3
"""
Live index of accessibility issues per cell.

The index stores UI-agnostic entries; a presenter (see panel.py) turns them
into indicators and panel rows. All mutations are synchronous, so under a
single event loop each replace/remove is atomic with respect to scans of
other cells.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional, Protocol

from analyze import Finding, FindingKind
from config import HIGHLIGHT_SECONDS

logger = logging.getLogger(__name__)


def indicator_id(cell_id: str) -> str:
    """Deterministic id of the marker attached to a cell with issues."""
    return f"accessibility-indicator-{cell_id}"


@dataclass(frozen=True)
class IssueEntry:
    """One row of the panel: a distinct message for a cell."""
    cell_id: str
    message: str
    kind: Optional[FindingKind] = None

    @property
    def entry_id(self) -> str:
        return f"cell-{self.cell_id}_{self.message}"


class IssuePresenter(Protocol):
    def add_row(self, entry: IssueEntry) -> None: ...
    def remove_row(self, entry: IssueEntry) -> None: ...
    def has_indicator(self, indicator_id: str) -> bool: ...
    def attach_indicator(self, cell_id: str, indicator_id: str) -> None: ...
    def detach_indicator(self, indicator_id: str) -> None: ...
    def scroll_to(self, cell_id: str) -> None: ...
    def set_highlight(self, cell_id: str, on: bool) -> None: ...


class IssueIndex:
    """Mapping cell id -> current issue entries, kept in sync with a presenter."""

    def __init__(self, presenter: Optional[IssuePresenter] = None,
                 highlight_seconds: float = HIGHLIGHT_SECONDS):
        self.presenter = presenter
        self.highlight_seconds = highlight_seconds
        # cell_id -> {message: entry}, insertion ordered
        self._entries: dict[str, dict[str, IssueEntry]] = {}
        self._highlight_timers: dict[str, asyncio.TimerHandle] = {}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def entries(self, cell_id: Optional[str] = None) -> list[IssueEntry]:
        """Entries for one cell, or for every cell in insertion order."""
        if cell_id is not None:
            return list(self._entries.get(cell_id, {}).values())
        return [entry for per_cell in self._entries.values() for entry in per_cell.values()]

    def messages(self, cell_id: str) -> list[str]:
        return list(self._entries.get(cell_id, {}))

    def cells(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, cell_id: str) -> bool:
        return cell_id in self._entries

    def __len__(self) -> int:
        return sum(len(per_cell) for per_cell in self._entries.values())

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def replace(self, cell_id: str, findings: Iterable[Finding]) -> list[IssueEntry]:
        """
        Make the cell's entries reflect exactly this finding list.

        Duplicate messages within the list collapse into one entry. When the
        resulting messages equal the current ones nothing is recreated;
        otherwise every old entry is removed before the new ones are added.

        Returns:
            The cell's entries after the update.
        """
        fresh: dict[str, IssueEntry] = {}
        for finding in findings:
            message = finding.message
            if message not in fresh:
                fresh[message] = IssueEntry(cell_id, message, finding.kind)

        current = self._entries.get(cell_id, {})
        if list(current) == list(fresh):
            self._sync_indicator(cell_id)
            return list(current.values())

        self._drop_entries(cell_id)
        if fresh:
            self._entries[cell_id] = fresh
            if self.presenter is not None:
                for entry in fresh.values():
                    self.presenter.add_row(entry)

        self._sync_indicator(cell_id)
        logger.debug("Cell %s now has %d issue(s)", cell_id, len(fresh))
        return list(fresh.values())

    def remove(self, cell_id: str) -> None:
        """Remove all entries and the indicator for a cell. No-op if it has none."""
        self._drop_entries(cell_id)
        self._sync_indicator(cell_id)

    def clear(self) -> None:
        for cell_id in list(self._entries):
            self.remove(cell_id)

    def _drop_entries(self, cell_id: str) -> None:
        old = self._entries.pop(cell_id, None)
        if old and self.presenter is not None:
            for entry in old.values():
                self.presenter.remove_row(entry)

    def _sync_indicator(self, cell_id: str) -> None:
        if self.presenter is None:
            return
        marker = indicator_id(cell_id)
        present = self.presenter.has_indicator(marker)
        if self._entries.get(cell_id):
            if not present:
                self.presenter.attach_indicator(cell_id, marker)
        elif present:
            self.presenter.detach_indicator(marker)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def navigate_to(self, cell_id: str) -> None:
        """Scroll the host to a cell and flash it for ``highlight_seconds``."""
        if self.presenter is None:
            return
        self.presenter.scroll_to(cell_id)

        # The revert timer lives on the event loop; without one, scroll only
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; cell %s not highlighted", cell_id)
            return

        pending = self._highlight_timers.pop(cell_id, None)
        if pending is not None:
            pending.cancel()
        self.presenter.set_highlight(cell_id, True)
        self._highlight_timers[cell_id] = loop.call_later(
            self.highlight_seconds, self._end_highlight, cell_id)

    def _end_highlight(self, cell_id: str) -> None:
        self._highlight_timers.pop(cell_id, None)
        if self.presenter is not None:
            self.presenter.set_highlight(cell_id, False)
