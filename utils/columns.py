"""
Column selection for a worksheet.

Columns are 1-based indices. They come from an explicit list, from an
Excel-style range such as ``"A:C"``, or from the worksheet's used columns.
"""
import logging
from typing import List

from openpyxl.worksheet.worksheet import Worksheet

from utils.errors import RangeFormatError
from utils.parameters import SheetSettings

logger = logging.getLogger(__name__)


def column_to_number(column: str) -> int:
    """
    Convert a column name to its 1-based index ("A" -> 1, "Z" -> 26, "AA" -> 27).

    Letters are read as base-26 digits without a zero digit. Characters are not
    validated; callers are expected to pass upper-case letters.
    """
    number = 0
    for char in column:
        number = number * 26 + (ord(char) - ord("A") + 1)
    return number


def parse_column_range(column_range: str) -> List[int]:
    """
    Expand a range such as "B:D" into [2, 3, 4].

    Raises:
        RangeFormatError: If the text does not split into exactly two parts on ":"
    """
    parts = column_range.split(":")
    if len(parts) != 2:
        raise RangeFormatError()

    start = column_to_number(parts[0])
    end = column_to_number(parts[1])
    # An end before the start gives an empty selection.
    return list(range(start, start + (end - start + 1)))


def used_columns(worksheet: Worksheet) -> List[int]:
    return list(range(worksheet.min_column, worksheet.max_column + 1))


def resolve_columns(settings: SheetSettings, worksheet: Worksheet) -> List[int]:
    """
    Ordered column indices to read from ``worksheet``.

    Args:
        settings: Resolved settings of the worksheet
        worksheet: Worksheet whose used columns apply when no columns are configured

    Returns:
        List[int]: 1-based column indices, empty for an unusable setting
    """
    if settings.columns_invalid:
        logger.warning("Ignoring unsupported column setting", extra={"sheet_name": worksheet.title})
        return []
    if settings.columns is None:
        return used_columns(worksheet)
    if isinstance(settings.columns, str):
        return parse_column_range(settings.columns)
    return list(settings.columns)
