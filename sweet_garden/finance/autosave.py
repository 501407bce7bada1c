"""
Debounced per-cell autosave for ledger editing.

Rapid edits to the same cell are coalesced into one write, issued `delay` seconds after the last edit.
Every cell moves through idle -> pending -> saving -> saved | error, and each transition is reported
through `on_state_change(key, state, error)` so a UI can highlight the cell without this module knowing about it.

The HTTP API stays one write per request (PUT /api/finanzas/cell). This module is for long-lived
editing clients that hold a SheetLedger directly, such as an admin console or import script:
build one with `ledger_cell_saver(ledger)`, call `edit` per keystroke and `flush` before exiting.
"""
from enum import Enum
import logging
import threading

logger = logging.getLogger(__name__)

SAVE_DEBOUNCE_SECONDS = 0.8


class SaveState(Enum):
    IDLE = 'idle'
    PENDING = 'pending'
    SAVING = 'saving'
    SAVED = 'saved'
    ERROR = 'error'


class CellAutosaver:

    def __init__(self, save, delay: float = SAVE_DEBOUNCE_SECONDS, on_state_change=None):
        self._save = save
        self._delay = delay
        self._on_state_change = on_state_change
        self._lock = threading.Lock()
        # {key: (timer, value, version)}
        self._pending = {}
        self._states = {}
        # Bumped on every edit; a save only reports its outcome if no newer edit arrived meanwhile
        self._versions = {}
        # One write at a time per cell
        self._save_locks = {}

    def state(self, key) -> SaveState:
        with self._lock:
            return self._states.get(key, SaveState.IDLE)

    def _transition(self, key, state: SaveState, error=None):
        with self._lock:
            self._states[key] = state
        if self._on_state_change:
            self._on_state_change(key, state, error)

    def _is_latest(self, key, version) -> bool:
        with self._lock:
            return self._versions.get(key) == version

    def edit(self, key, value):
        """Schedules a save of `value`, replacing any save still waiting for the same key."""
        timer = threading.Timer(self._delay, self._fire, args=(key,))
        timer.daemon = True
        with self._lock:
            previous = self._pending.get(key)
            if previous:
                previous[0].cancel()
            version = self._versions.get(key, 0) + 1
            self._versions[key] = version
            self._pending[key] = (timer, value, version)
        self._transition(key, SaveState.PENDING)
        timer.start()

    def _fire(self, key):
        with self._lock:
            entry = self._pending.pop(key, None)
        if entry is None:
            # Superseded or flushed
            return
        self._run_save(key, entry[1], entry[2])

    def _run_save(self, key, value, version):
        with self._lock:
            save_lock = self._save_locks.setdefault(key, threading.Lock())
        with save_lock:
            self._transition(key, SaveState.SAVING)
            try:
                self._save(key, value)
            except Exception as e:
                # Reported to the UI through the error state; the edit is not retried
                logger.error("Autosave of %s failed: %s", key, e)
                if self._is_latest(key, version):
                    self._transition(key, SaveState.ERROR, e)
                return
            # A newer edit is already pending and will report for this cell
            if self._is_latest(key, version):
                self._transition(key, SaveState.SAVED)

    def flush(self):
        """Runs every pending save now, in the calling thread."""
        with self._lock:
            pending = self._pending
            self._pending = {}
        for key, (timer, value, version) in pending.items():
            timer.cancel()
            self._run_save(key, value, version)

    def cancel(self):
        """Drops every pending save. Cancelled cells go back to idle."""
        with self._lock:
            pending = self._pending
            self._pending = {}
        for key, (timer, _, _) in pending.items():
            timer.cancel()
            self._transition(key, SaveState.IDLE)

    def pending_keys(self) -> list:
        with self._lock:
            return list(self._pending)


def ledger_cell_saver(ledger, delay: float = SAVE_DEBOUNCE_SECONDS, on_state_change=None) -> CellAutosaver:
    """
    Autosaver writing straight to a SheetLedger. Keys are (sheet_type, row_index, col_index).
    """
    def save(key, value):
        sheet_type, row_index, col_index = key
        ledger.update_cell(sheet_type, row_index, col_index, value)

    return CellAutosaver(save, delay=delay, on_state_change=on_state_change)
