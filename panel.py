#!/usr/bin/env python3
"""
Headless presentation of the issue index.

Keeps the state a UI would render: which cells carry an indicator, the
ordered rows of the side panel, highlight and scroll requests. ``render``
produces the panel as plain text.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

PANEL_TITLE = "Cells with Accessibility Issues"


class PanelView:
    """In-memory IssuePresenter."""

    def __init__(self, title: str = PANEL_TITLE):
        self.title = title
        self.index = None  # Set by bind(); rows call back into it on click
        self.indicators: dict[str, str] = {}  # indicator_id -> cell_id
        self.rows: list = []  # IssueEntry, display order
        self.highlighted: set[str] = set()
        self.scroll_requests: list[str] = []

    def bind(self, index) -> 'PanelView':
        index.presenter = self
        self.index = index
        return self

    # Rows
    def add_row(self, entry) -> None:
        if any(row.entry_id == entry.entry_id for row in self.rows):
            return
        self.rows.append(entry)

    def remove_row(self, entry) -> None:
        self.rows = [row for row in self.rows if row.entry_id != entry.entry_id]

    # Indicators
    def has_indicator(self, indicator_id: str) -> bool:
        return indicator_id in self.indicators

    def attach_indicator(self, cell_id: str, indicator_id: str) -> None:
        self.indicators[indicator_id] = cell_id

    def detach_indicator(self, indicator_id: str) -> None:
        self.indicators.pop(indicator_id, None)

    # Navigation
    def scroll_to(self, cell_id: str) -> None:
        self.scroll_requests.append(cell_id)

    def set_highlight(self, cell_id: str, on: bool) -> None:
        if on:
            self.highlighted.add(cell_id)
        else:
            self.highlighted.discard(cell_id)

    def click(self, entry_id: str) -> Optional[str]:
        """Activate a panel row; returns the cell navigated to."""
        for row in self.rows:
            if row.entry_id == entry_id:
                if self.index is not None:
                    self.index.navigate_to(row.cell_id)
                return row.cell_id
        logger.debug("No panel row %s", entry_id)
        return None

    def render(self) -> str:
        """Render the panel as text, one line per issue."""
        lines = [self.title]
        if not self.rows:
            lines.append("  (no issues)")
        for row in self.rows:
            lines.append(f"  [{row.cell_id}] {row.message}")
        return '\n'.join(lines)
