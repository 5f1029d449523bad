#!/usr/bin/env python3
"""
Scan orchestration.

Watches cells for content changes, re-scans the affected cell and reconciles
the result into the issue index. Overlapping scans of one cell are resolved
by sequence number: only the most recently started scan may publish.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Optional

from analyze import CellScanner, Finding
from config import DEFAULT_CONFIG, ScanConfig
from issue_index import IssueIndex
from notebook import Cell, Notebook, Subscription

logger = logging.getLogger(__name__)


class ScanOrchestrator:
    """Owns the enable gate, the per-cell listeners and scan ordering."""

    def __init__(self, index: IssueIndex, scanner: Optional[CellScanner] = None,
                 config: ScanConfig = DEFAULT_CONFIG, enabled: bool = True):
        self.index = index
        self.scanner = scanner or CellScanner(config)
        self._enabled = enabled

        self._cells: dict[str, Cell] = {}
        self._listeners: dict[str, Subscription] = {}
        # Latest scan started per cell; numbers come from one global counter
        # so a cell that is removed and re-added never reuses a number.
        self._latest: dict[str, int] = {}
        self._counter = itertools.count(1)

        self._notebook: Optional[Notebook] = None
        self._notebook_listeners: list[Subscription] = []
        self._tasks: set[asyncio.Task] = set()
        # Cells edited while no event loop was running; scanned on the next drain()
        self._pending: dict[str, Cell] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def tracked(self) -> list[str]:
        return list(self._cells)

    def is_watched(self, cell_id: str) -> bool:
        return cell_id in self._listeners

    # -------------------------------------------------------------------------
    # Gate
    # -------------------------------------------------------------------------

    async def set_enabled(self, enabled: bool) -> None:
        """
        Turn scanning on or off.

        Off clears every indicator at once and invalidates scans in flight.
        On re-scans every tracked cell before returning.
        """
        self._enabled = enabled
        logger.info("Accessibility checks %s.", 'enabled' if enabled else 'disabled')
        if enabled:
            await self.scan_all()
            return
        for cell_id in self._cells:
            self._begin(cell_id)
            self.index.remove(cell_id)

    async def toggle(self) -> bool:
        await self.set_enabled(not self._enabled)
        return self._enabled

    # -------------------------------------------------------------------------
    # Cell lifecycle
    # -------------------------------------------------------------------------

    def watch(self, cell: Cell) -> bool:
        """Attach a content listener to a cell. Returns False if already watched."""
        if cell.cell_id in self._listeners:
            return False
        self._cells[cell.cell_id] = cell
        self._latest.setdefault(cell.cell_id, 0)
        self._listeners[cell.cell_id] = cell.content_changed.connect(self._on_content_changed)
        return True

    def unwatch(self, cell_id: str) -> None:
        """Detach a cell's listener, drop scans in flight and clear its issues."""
        listener = self._listeners.pop(cell_id, None)
        if listener is not None:
            listener.dispose()
        self._cells.pop(cell_id, None)
        self._pending.pop(cell_id, None)
        self._latest.pop(cell_id, None)
        self.index.remove(cell_id)

    async def attach(self, notebook: Notebook) -> None:
        """Watch every cell of a notebook and its creation feed, then scan it."""
        self.detach()
        self._notebook = notebook
        for cell in notebook.cells:
            self.watch(cell)
        self._notebook_listeners = [
            notebook.cell_added.connect(self._on_cell_added),
            notebook.cell_removed.connect(self._on_cell_removed),
        ]
        logger.info("Watching %d cell(s) of %s", len(notebook.cells), notebook.path or 'notebook')
        await self.scan_all()

    def detach(self) -> None:
        """Dispose every listener and forget all tracked cells."""
        for listener in self._notebook_listeners:
            listener.dispose()
        self._notebook_listeners = []
        for cell_id in list(self._cells):
            self.unwatch(cell_id)
        self._notebook = None

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def _begin(self, cell_id: str) -> int:
        seq = next(self._counter)
        self._latest[cell_id] = seq
        return seq

    async def refresh(self, cell: Cell) -> Optional[list[Finding]]:
        """
        Re-evaluate one watched cell and publish the result.

        Returns the published findings, or None when nothing was published
        (gate off, cell no longer watched, or a newer scan superseded this one).
        """
        cell_id = cell.cell_id
        if cell_id not in self._cells:
            return None
        seq = self._begin(cell_id)

        if not self._enabled:
            self.index.remove(cell_id)
            return None

        base_path = self._notebook.directory if self._notebook is not None else None
        findings = await self.scanner.scan(cell, base_path=base_path)

        if self._latest.get(cell_id) != seq or not self._enabled:
            logger.debug("Discarding stale scan %d of cell %s", seq, cell_id)
            return None

        self.index.replace(cell_id, findings)
        return findings

    async def scan_all(self) -> None:
        """Re-evaluate every tracked cell concurrently."""
        self._pending.clear()
        await asyncio.gather(*(self.refresh(cell) for cell in list(self._cells.values())))

    def schedule(self, cell: Cell) -> Optional[asyncio.Task]:
        """
        Start a refresh in the background.

        Outside a running event loop the cell is queued instead and scanned by
        the next drain() or scan_all().
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; scan of cell %s deferred", cell.cell_id)
            self._pending[cell.cell_id] = cell
            return None
        task = loop.create_task(self._run(cell))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, cell: Cell) -> None:
        try:
            await self.refresh(cell)
        except Exception:
            logger.exception("Scan of cell %s failed", cell.cell_id)

    async def drain(self) -> None:
        """Wait until every background scan has finished."""
        pending, self._pending = list(self._pending.values()), {}
        for cell in pending:
            self.schedule(cell)
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -------------------------------------------------------------------------
    # Event callbacks
    # -------------------------------------------------------------------------

    def _on_content_changed(self, cell: Cell) -> None:
        self.schedule(cell)

    def _on_cell_added(self, cell: Cell) -> None:
        if self.watch(cell):
            self.schedule(cell)

    def _on_cell_removed(self, cell: Cell) -> None:
        self.unwatch(cell.cell_id)
