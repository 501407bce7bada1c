"""
Income and expense ledgers kept in two Google Sheets.

Columns are resolved by header text on every read, never by position, so staff can reorder or add
columns in either spreadsheet without a code change. Only the columns named here must exist.
"""
from dataclasses import dataclass
import logging
import re

from sweet_garden.booking.error_utils import ServiceNotConfiguredError, SheetSchemaError, ValidationError
from .currency import parse_currency

logger = logging.getLogger(__name__)

YEAR_HEADER = 'Año'
MONTH_HEADER = 'Mes'


@dataclass(frozen=True)
class SheetConfig:
    spreadsheet_id: str | None
    sheet_name: str
    currency_headers: tuple
    summary_header: str

    @property
    def tracked_range(self) -> str:
        return f"{self.sheet_name}!A1:Z"


# Accepted English spellings of the two sheet types
SHEET_TYPE_ALIASES = {'income': 'ingresos', 'expense': 'egresos'}


def sheet_configs(config) -> dict:
    return {
        'ingresos': SheetConfig(
            spreadsheet_id=config.ingresos_sheet_id,
            sheet_name='Facturacion',
            currency_headers=('Valor bruto', 'Valor sin Iva', 'Vlr ant de IVA', 'Valor neto'),
            summary_header='Valor neto',
        ),
        'egresos': SheetConfig(
            spreadsheet_id=config.egresos_sheet_id,
            sheet_name='Transacciones',
            currency_headers=('Valor', 'Valor Unitario'),
            summary_header='Valor Unitario',
        ),
    }


def _normalize_header(header) -> str:
    return str(header).strip().lower() if header is not None else ''


def find_column_index(headers: list, column_name: str) -> int:
    """Case-insensitive, trimmed header match. Returns -1 when absent."""
    wanted = _normalize_header(column_name)
    for index, header in enumerate(headers):
        if header and _normalize_header(header) == wanted:
            return index
    return -1


def column_index_to_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA"""
    letters = ''
    i = index
    while i >= 0:
        letters = chr(65 + i % 26) + letters
        i = i // 26 - 1
    return letters


def parse_leading_int(value) -> int | None:
    """Integer prefix of a cell, the way the sheets were always read ("2025", " 3 ", "7.0" -> 7)."""
    match = re.match(r'^\s*([+-]?[0-9]+)', str(value)) if value is not None else None
    return int(match.group(1)) if match else None


def last_row_number(updated_range: str) -> int | None:
    """Row number of the end of an A1 range such as 'Facturacion!A57:Z57'."""
    numbers = re.findall(r'\d+', updated_range or '')
    return int(numbers[-1]) if numbers else None


class SheetSchema:
    """
    Name to index mapping resolved once from a header row.
    """

    def __init__(self, sheet_type: str, headers: list):
        self.sheet_type = sheet_type
        self.headers = headers
        self._indexes = {}

    def index_of(self, column_name: str) -> int:
        if column_name not in self._indexes:
            self._indexes[column_name] = find_column_index(self.headers, column_name)
        return self._indexes[column_name]

    def require(self, column_name: str) -> int:
        index = self.index_of(column_name)
        if index == -1:
            raise SheetSchemaError(self.sheet_type, column_name)
        return index

    def optional_indexes(self, column_names) -> list[int]:
        return [i for i in (self.index_of(name) for name in column_names) if i != -1]


class SheetLedger:

    def __init__(self, service, configs: dict):
        self.service = service
        self.configs = configs

    def _resolve(self, sheet_type: str) -> tuple[str, SheetConfig]:
        if not isinstance(sheet_type, str):
            raise ValidationError('Tipo de hoja inválido')
        sheet_type = SHEET_TYPE_ALIASES.get(sheet_type, sheet_type)
        config = self.configs.get(sheet_type)
        if config is None:
            raise ValidationError('Tipo de hoja inválido')
        if self.service is None or not config.spreadsheet_id:
            raise ServiceNotConfiguredError('Google Sheets')
        return sheet_type, config

    def _values(self):
        return self.service.spreadsheets().values()

    def _read_all(self, config: SheetConfig) -> list[list]:
        response = self._values().get(spreadsheetId=config.spreadsheet_id, range=config.tracked_range).execute()
        return response.get('values', [])

    def _period_rows(self, schema: SheetSchema, data_rows: list, year: int, month: int):
        """Yields (row_index, row) for data rows of the given period. Row 1 is the header."""
        col_year = schema.require(YEAR_HEADER)
        col_month = schema.require(MONTH_HEADER)
        for offset, row in enumerate(data_rows):
            row_year = parse_leading_int(row[col_year]) if col_year < len(row) else None
            row_month = parse_leading_int(row[col_month]) if col_month < len(row) else None
            if row_year == year and row_month == month:
                yield offset + 2, row

    def get_sheet(self, sheet_type: str, year: int, month: int) -> dict:
        """
        Full sheet content for one month.

        Returns: {"headers", "rows": [{"rowIndex", "cells"}], "currencyColumns"}.
            Each row keeps its 1-based row number in the spreadsheet so edits can be addressed back to it.
            Cells are padded to the header width since the Sheets API omits trailing empty cells.
        """
        sheet_type, config = self._resolve(sheet_type)
        all_rows = self._read_all(config)
        if not all_rows:
            return {"headers": [], "rows": [], "currencyColumns": []}

        headers = all_rows[0]
        schema = SheetSchema(sheet_type, headers)
        if len(all_rows) == 1:
            return {"headers": headers, "rows": [], "currencyColumns": []}

        rows = []
        for row_index, row in self._period_rows(schema, all_rows[1:], year, month):
            cells = [row[j] if j < len(row) and row[j] is not None else '' for j in range(len(headers))]
            rows.append({"rowIndex": row_index, "cells": cells})

        logger.info("Read %s %s rows for %s-%02d", len(rows), sheet_type, year, month)
        return {
            "headers": headers,
            "rows": rows,
            "currencyColumns": schema.optional_indexes(config.currency_headers),
        }

    def update_cell(self, sheet_type: str, row_index: int, col_index: int, value) -> dict:
        """
        Writes one cell in place. No check against concurrent edits: last write wins.
        """
        sheet_type, config = self._resolve(sheet_type)
        cell_range = f"{config.sheet_name}!{column_index_to_letter(col_index)}{row_index}"
        self._values().update(
            spreadsheetId=config.spreadsheet_id,
            range=cell_range,
            valueInputOption='USER_ENTERED',
            body={"values": [[value]]},
        ).execute()
        logger.info("Updated %s cell %s", sheet_type, cell_range)
        return {"range": cell_range, "value": value}

    def append_row(self, sheet_type: str, cells: list) -> dict:
        sheet_type, config = self._resolve(sheet_type)
        response = self._values().append(
            spreadsheetId=config.spreadsheet_id,
            range=config.tracked_range,
            valueInputOption='USER_ENTERED',
            insertDataOption='INSERT_ROWS',
            body={"values": [cells]},
        ).execute()
        updated_range = response.get('updates', {}).get('updatedRange', '')
        row_index = last_row_number(updated_range)
        logger.info("Appended %s row at %s", sheet_type, updated_range or 'unknown range')
        return {"rowIndex": row_index, "cells": cells}

    def monthly_total(self, sheet_type: str, year: int, month: int) -> float:
        sheet_type, config = self._resolve(sheet_type)
        all_rows = self._read_all(config)
        if len(all_rows) <= 1:
            return 0.0
        schema = SheetSchema(sheet_type, all_rows[0])
        col_value = schema.require(config.summary_header)
        return sum(parse_currency(row[col_value]) if col_value < len(row) else 0.0
                   for _, row in self._period_rows(schema, all_rows[1:], year, month))

    def finance_summary(self, year: int, month: int) -> dict:
        total_income = self.monthly_total('ingresos', year, month)
        total_expense = self.monthly_total('egresos', year, month)
        return {
            "totalIncome": total_income,
            "totalExpense": total_expense,
            "cashFlow": total_income - total_expense,
        }
