#!/usr/bin/env python3
"""
In-memory notebook model with change notification.

Hosts adapt their own cell objects to this shape: a stable id, a content
type, current source (markdown text or rendered output HTML), a CSS
background color, and a ``content_changed`` signal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from markup import CODE_OUTPUT_CELL, TEXT_CELL

logger = logging.getLogger(__name__)


class Subscription:
    """Handle returned by Signal.connect; dispose() disconnects."""

    def __init__(self, signal: Signal, callback: Callable):
        self._signal = signal
        self.callback = callback

    @property
    def active(self) -> bool:
        return self._signal is not None

    def dispose(self) -> None:
        if self._signal is None:
            return
        self._signal._disconnect(self)
        self._signal = None


class Signal:
    """Synchronous observer list. Callbacks run in connection order."""

    def __init__(self, name: str = ""):
        self.name = name
        self._subscriptions: list[Subscription] = []

    def connect(self, callback: Callable) -> Subscription:
        sub = Subscription(self, callback)
        self._subscriptions.append(sub)
        return sub

    def _disconnect(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass

    def emit(self, *args) -> None:
        # Copy: callbacks may dispose their own subscription
        for sub in list(self._subscriptions):
            try:
                sub.callback(*args)
            except Exception:
                logger.exception("Callback for signal %s failed", self.name or "<anonymous>")

    def __len__(self) -> int:
        return len(self._subscriptions)


class Cell:
    """A notebook cell as seen by the scanner."""

    def __init__(self, cell_id: str, cell_type: str = TEXT_CELL, source: str = "",
                 background: str = ""):
        if cell_type not in (TEXT_CELL, CODE_OUTPUT_CELL):
            raise ValueError(f"Unknown cell type: {cell_type!r}")
        self.cell_id = cell_id
        self.cell_type = cell_type
        self.source = source
        self.background = background  # CSS color, e.g. '#FFFFFF' or 'rgb(255, 255, 255)'
        self.content_changed = Signal(f"{cell_id}.content_changed")

    def set_source(self, source: str) -> None:
        self.source = source
        self.content_changed.emit(self)

    def set_background(self, background: str) -> None:
        self.background = background
        self.content_changed.emit(self)

    def __repr__(self) -> str:
        return f"Cell({self.cell_id!r}, {self.cell_type!r})"


class Notebook:
    """Ordered collection of cells with creation and removal feeds."""

    def __init__(self, path: str = "", cells: Optional[list[Cell]] = None):
        self.path = path
        self.cells: list[Cell] = list(cells or [])
        self.cell_added = Signal("cell_added")
        self.cell_removed = Signal("cell_removed")

    def add_cell(self, cell: Cell, index: Optional[int] = None) -> Cell:
        if self.get_cell(cell.cell_id) is not None:
            raise ValueError(f"Duplicate cell id: {cell.cell_id}")
        if index is None:
            self.cells.append(cell)
        else:
            self.cells.insert(index, cell)
        self.cell_added.emit(cell)
        return cell

    def remove_cell(self, cell_id: str) -> Optional[Cell]:
        cell = self.get_cell(cell_id)
        if cell is None:
            return None
        self.cells.remove(cell)
        self.cell_removed.emit(cell)
        return cell

    def get_cell(self, cell_id: str) -> Optional[Cell]:
        for cell in self.cells:
            if cell.cell_id == cell_id:
                return cell
        return None

    @property
    def directory(self) -> str:
        """Directory of the notebook path, used to resolve relative images."""
        return self.path.rsplit('/', 1)[0] if '/' in self.path else ''
