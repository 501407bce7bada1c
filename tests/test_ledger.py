import random
import unittest

from sweet_garden.booking.error_utils import ServiceNotConfiguredError, SheetSchemaError, ValidationError
from sweet_garden.finance.currency import parse_currency
from sweet_garden.finance.ledger import (SheetLedger, column_index_to_letter, find_column_index, last_row_number,
                                         parse_leading_int, sheet_configs)
from fakes import EGRESOS_ID, INGRESOS_ID, FakeSheetsService, make_config

INGRESOS_HEADERS = ['Fecha', 'Cliente', 'Valor bruto', 'Valor neto', 'Año', 'Mes']
EGRESOS_HEADERS = [' año ', 'MES', 'Concepto', 'Valor Unitario', 'Valor']


def ledger_data():
    return {
        INGRESOS_ID: [
            INGRESOS_HEADERS,
            ['2025-03-02', 'Ana', '$100.000', '$84.034', '2025', '3'],
            ['2025-03-15', 'Luis', '$50.000', '45.000,50', '2025', '03'],
            ['2025-04-01', 'Sara', '$10.000', '$9.000', '2025', '4'],
            ['2024-03-20', 'Viejo', '', '$1.000', '2024', '3'],
        ],
        EGRESOS_ID: [
            EGRESOS_HEADERS,
            ['2025', '3', 'Tintas', '$20.000', '$20.000'],
            ['2025', '3', 'Agujas', '5.000,25', '5.000,25'],
            ['2025', '2', 'Arriendo', '$1.000.000', ''],
        ],
    }


class CurrencyTest(unittest.TestCase):

    def test_agreed_format(self):
        self.assertEqual(parse_currency("$1.234.567"), 1234567)
        self.assertEqual(parse_currency("45.000,50"), 45000.5)
        self.assertEqual(parse_currency("$ 2.500"), 2500)
        self.assertEqual(parse_currency("-3.000"), -3000)
        self.assertEqual(parse_currency(1500), 1500)

    def test_empty_and_garbage_are_zero(self):
        for value in ("", None, 0, "abc", "$", ",", "--5", "NaN", [], "$-", "١٢٣", "１２"):
            with self.subTest(value=value):
                self.assertEqual(parse_currency(value), 0)

    def test_leading_number_wins_over_trailing_text(self):
        self.assertEqual(parse_currency("12.000 COP"), 12000)
        self.assertEqual(parse_currency("7,5kg"), 7.5)

    def test_only_first_comma_is_decimal(self):
        self.assertEqual(parse_currency("1,2,3"), 1.2)


class HelpersTest(unittest.TestCase):

    def test_column_letters(self):
        self.assertEqual(column_index_to_letter(0), 'A')
        self.assertEqual(column_index_to_letter(25), 'Z')
        self.assertEqual(column_index_to_letter(26), 'AA')
        self.assertEqual(column_index_to_letter(27), 'AB')
        self.assertEqual(column_index_to_letter(701), 'ZZ')

    def test_find_column_is_trimmed_and_case_insensitive(self):
        self.assertEqual(find_column_index(EGRESOS_HEADERS, 'Año'), 0)
        self.assertEqual(find_column_index(EGRESOS_HEADERS, 'mes'), 1)
        self.assertEqual(find_column_index(EGRESOS_HEADERS, 'Valor neto'), -1)
        self.assertEqual(find_column_index(['', None, 'Mes'], 'Mes'), 2)

    def test_parse_leading_int(self):
        self.assertEqual(parse_leading_int('2025'), 2025)
        self.assertEqual(parse_leading_int(' 03 '), 3)
        self.assertEqual(parse_leading_int('7.0'), 7)
        self.assertIsNone(parse_leading_int('marzo'))
        self.assertIsNone(parse_leading_int('٢٠٢٥'))
        self.assertEqual(parse_leading_int('3３'), 3)
        self.assertIsNone(parse_leading_int(None))

    def test_last_row_number(self):
        self.assertEqual(last_row_number('Facturacion!A57:Z57'), 57)
        self.assertEqual(last_row_number('Transacciones!A9'), 9)
        self.assertIsNone(last_row_number(''))


class SheetLedgerTest(unittest.TestCase):

    def setUp(self):
        self.sheets = FakeSheetsService(ledger_data())
        self.ledger = SheetLedger(self.sheets, sheet_configs(make_config()))

    def test_get_sheet_filters_period_and_keeps_row_numbers(self):
        result = self.ledger.get_sheet('ingresos', 2025, 3)
        self.assertEqual(result["headers"], INGRESOS_HEADERS)
        self.assertEqual([row["rowIndex"] for row in result["rows"]], [2, 3])
        self.assertEqual(result["rows"][1]["cells"][1], 'Luis')
        # Valor bruto and Valor neto present, the other two currency headers absent
        self.assertEqual(result["currencyColumns"], [2, 3])

    def test_get_sheet_pads_short_rows(self):
        result = self.ledger.get_sheet('egresos', 2025, 2)
        self.assertEqual(result["rows"], [{"rowIndex": 4, "cells": ['2025', '2', 'Arriendo', '$1.000.000', '']}])
        self.assertEqual(result["currencyColumns"], [4, 3])

    def test_english_alias(self):
        self.assertEqual(self.ledger.get_sheet('income', 2025, 3), self.ledger.get_sheet('ingresos', 2025, 3))

    def test_empty_sheet_and_header_only(self):
        self.sheets.data[INGRESOS_ID] = []
        self.assertEqual(self.ledger.get_sheet('ingresos', 2025, 3), {"headers": [], "rows": [], "currencyColumns": []})
        self.sheets.data[INGRESOS_ID] = [INGRESOS_HEADERS]
        self.assertEqual(self.ledger.get_sheet('ingresos', 2025, 3),
                         {"headers": INGRESOS_HEADERS, "rows": [], "currencyColumns": []})

    def test_missing_period_column_is_schema_error(self):
        self.sheets.data[INGRESOS_ID] = [['Fecha', 'Valor neto'], ['2025-03-02', '$1.000']]
        with self.assertRaises(SheetSchemaError) as ctx:
            self.ledger.get_sheet('ingresos', 2025, 3)
        self.assertEqual(ctx.exception.column, 'Año')

    def test_invalid_type(self):
        with self.assertRaises(ValidationError):
            self.ledger.get_sheet('nomina', 2025, 3)
        for sheet_type in (['ingresos'], None, 1):
            with self.subTest(sheet_type=sheet_type):
                with self.assertRaises(ValidationError):
                    self.ledger.update_cell(sheet_type, 2, 0, 'x')

    def test_unconfigured(self):
        ledger = SheetLedger(None, sheet_configs(make_config()))
        with self.assertRaises(ServiceNotConfiguredError):
            ledger.get_sheet('ingresos', 2025, 3)
        ledger = SheetLedger(self.sheets, sheet_configs(make_config(EGRESOS_SHEET_ID='')))
        with self.assertRaises(ServiceNotConfiguredError):
            ledger.append_row('egresos', ['2025'])

    def test_update_cell(self):
        result = self.ledger.update_cell('ingresos', 3, 3, '$46.000')
        self.assertEqual(result, {"range": "Facturacion!D3", "value": "$46.000"})
        self.assertEqual(self.sheets.data[INGRESOS_ID][2][3], '$46.000')

    def test_update_cell_beyond_z(self):
        result = self.ledger.update_cell('egresos', 2, 27, 'x')
        self.assertEqual(result["range"], "Transacciones!AB2")

    def test_append_row(self):
        result = self.ledger.append_row('egresos', ['2025', '3', 'Guantes', '$8.000', '$8.000'])
        self.assertEqual(result["rowIndex"], 5)
        self.assertEqual(self.sheets.data[EGRESOS_ID][-1][2], 'Guantes')
        self.assertEqual(self.ledger.finance_summary(2025, 3)["totalExpense"], 33000.25)

    def test_append_row_without_reported_range(self):
        self.sheets.omit_updated_range = True
        self.assertIsNone(self.ledger.append_row('egresos', ['2025'])["rowIndex"])

    def test_finance_summary(self):
        summary = self.ledger.finance_summary(2025, 3)
        self.assertAlmostEqual(summary["totalIncome"], 129034.5)
        self.assertAlmostEqual(summary["totalExpense"], 25000.25)
        self.assertAlmostEqual(summary["cashFlow"], 104034.25)

    def test_finance_summary_ignores_row_order(self):
        expected = self.ledger.finance_summary(2025, 3)
        rng = random.Random(7)
        for _ in range(5):
            for sheet_id in (INGRESOS_ID, EGRESOS_ID):
                header, *rows = self.sheets.data[sheet_id]
                rng.shuffle(rows)
                self.sheets.data[sheet_id] = [header] + rows
            shuffled = self.ledger.finance_summary(2025, 3)
            for key in expected:
                self.assertAlmostEqual(shuffled[key], expected[key])

    def test_finance_summary_missing_value_column(self):
        self.sheets.data[EGRESOS_ID] = [['Año', 'Mes', 'Valor'], ['2025', '3', '$1.000']]
        with self.assertRaises(SheetSchemaError) as ctx:
            self.ledger.finance_summary(2025, 3)
        self.assertEqual(ctx.exception.column, 'Valor Unitario')

    def test_empty_month(self):
        self.assertEqual(self.ledger.finance_summary(2031, 1), {"totalIncome": 0, "totalExpense": 0, "cashFlow": 0})


if __name__ == '__main__':
    unittest.main()
