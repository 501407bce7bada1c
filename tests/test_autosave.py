import threading
import unittest

from sweet_garden.finance.autosave import CellAutosaver, SaveState, ledger_cell_saver
from sweet_garden.finance.ledger import SheetLedger, sheet_configs
from fakes import INGRESOS_ID, FakeSheetsService, make_config

WAIT = 5


class Recorder:
    """Collects state transitions and lets a test wait for a terminal one."""

    def __init__(self):
        self.transitions = []
        self.done = threading.Event()

    def __call__(self, key, state, error):
        self.transitions.append((key, state, error))
        if state in (SaveState.SAVED, SaveState.ERROR):
            self.done.set()

    def states(self, key):
        return [state for k, state, _ in self.transitions if k == key]


class CellAutosaverTest(unittest.TestCase):

    def setUp(self):
        self.saved = []
        self.recorder = Recorder()

    def save(self, key, value):
        self.saved.append((key, value))

    def test_rapid_edits_coalesce_into_one_save(self):
        saver = CellAutosaver(self.save, delay=0.1, on_state_change=self.recorder)
        key = ('ingresos', 5, 3)
        for value in ('$1', '$12', '$120.000'):
            saver.edit(key, value)
        self.assertTrue(self.recorder.done.wait(WAIT))
        self.assertEqual(self.saved, [(key, '$120.000')])
        self.assertEqual(saver.state(key), SaveState.SAVED)
        self.assertEqual(self.recorder.states(key)[-2:], [SaveState.SAVING, SaveState.SAVED])

    def test_edit_during_save_keeps_cell_pending(self):
        started = threading.Event()
        release = threading.Event()

        def slow_save(key, value):
            self.saved.append((key, value))
            started.set()
            release.wait(WAIT)

        saver = CellAutosaver(slow_save, delay=0.01, on_state_change=self.recorder)
        key = ('ingresos', 4, 2)
        saver.edit(key, '$1.000')
        self.assertTrue(started.wait(WAIT))
        saver.edit(key, '$2.000')
        self.assertEqual(saver.state(key), SaveState.PENDING)
        release.set()

        self.assertTrue(self.recorder.done.wait(WAIT))
        self.assertEqual(self.saved, [(key, '$1.000'), (key, '$2.000')])
        self.assertEqual(self.recorder.states(key), [SaveState.PENDING, SaveState.SAVING, SaveState.PENDING,
                                                     SaveState.SAVING, SaveState.SAVED])
        self.assertEqual(saver.state(key), SaveState.SAVED)

    def test_state_starts_idle_then_pending(self):
        saver = CellAutosaver(self.save, delay=60, on_state_change=self.recorder)
        key = ('egresos', 2, 0)
        self.assertEqual(saver.state(key), SaveState.IDLE)
        saver.edit(key, '2025')
        self.assertEqual(saver.state(key), SaveState.PENDING)
        self.assertEqual(saver.pending_keys(), [key])
        saver.cancel()

    def test_failed_save_reports_error(self):
        failure = RuntimeError('quota exceeded')

        def broken_save(key, value):
            raise failure

        saver = CellAutosaver(broken_save, delay=0.05, on_state_change=self.recorder)
        saver.edit('cell', 'x')
        self.assertTrue(self.recorder.done.wait(WAIT))
        self.assertEqual(saver.state('cell'), SaveState.ERROR)
        self.assertIs(self.recorder.transitions[-1][2], failure)

    def test_flush_saves_immediately(self):
        saver = CellAutosaver(self.save, delay=60, on_state_change=self.recorder)
        saver.edit('a', 1)
        saver.edit('b', 2)
        saver.flush()
        self.assertEqual(sorted(self.saved), [('a', 1), ('b', 2)])
        self.assertEqual(saver.pending_keys(), [])
        self.assertEqual(saver.state('a'), SaveState.SAVED)

    def test_cancel_drops_pending_saves(self):
        saver = CellAutosaver(self.save, delay=60, on_state_change=self.recorder)
        saver.edit('a', 1)
        saver.cancel()
        saver.flush()
        self.assertEqual(self.saved, [])
        self.assertEqual(saver.state('a'), SaveState.IDLE)

    def test_independent_cells_save_separately(self):
        saver = CellAutosaver(self.save, delay=60)
        saver.edit(('ingresos', 2, 1), 'Ana')
        saver.edit(('ingresos', 2, 2), '$1.000')
        saver.edit(('ingresos', 2, 1), 'Ana María')
        saver.flush()
        self.assertEqual(sorted(self.saved), [(('ingresos', 2, 1), 'Ana María'), (('ingresos', 2, 2), '$1.000')])


class LedgerCellSaverTest(unittest.TestCase):

    def test_writes_through_ledger(self):
        sheets = FakeSheetsService({INGRESOS_ID: [['Fecha', 'Valor neto', 'Año', 'Mes'],
                                                  ['2025-03-02', '$1.000', '2025', '3']]})
        ledger = SheetLedger(sheets, sheet_configs(make_config()))
        saver = ledger_cell_saver(ledger, delay=60)
        saver.edit(('ingresos', 2, 1), '$2.000')
        saver.edit(('ingresos', 2, 1), '$2.500')
        saver.flush()
        self.assertEqual(len(sheets.updates), 1)
        self.assertEqual(sheets.updates[0]["range"], 'Facturacion!B2')
        self.assertEqual(sheets.data[INGRESOS_ID][1][1], '$2.500')


if __name__ == '__main__':
    unittest.main()
