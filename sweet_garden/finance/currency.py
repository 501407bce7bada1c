# Parsing of Colombian peso amounts as typed into the ledger spreadsheets ("$1.234.567", "45.000,50")
import math
import re

# Leading numeric prefix, the same prefix JavaScript's parseFloat() accepts (ASCII digits only)
_FLOAT_PREFIX = re.compile(r'^[+-]?(?:Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)')


def parse_currency(value) -> float:
    """
    '.' is the thousands separator and ',' the decimal separator. Anything unparseable is 0, never an exception.

    The dashboard's live totals use the same rules, so a cell must add up to the same number on both sides:
    strip '$' and whitespace, drop every '.', turn the first ',' into '.', then read the leading number.
    """
    if not value:
        return 0.0
    cleaned = re.sub(r'[$\s]', '', str(value)).replace('.', '').replace(',', '.', 1)
    match = _FLOAT_PREFIX.match(cleaned)
    if not match:
        return 0.0
    number = float(match.group(0).replace('Infinity', 'inf'))
    if math.isnan(number):
        return 0.0
    return number
