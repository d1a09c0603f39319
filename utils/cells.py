"""
Cell value coercion.

openpyxl tags every cell with a ``data_type`` and, for cells with a date or
time number format, already converts the stored number into a ``datetime``,
``date``, ``time`` or ``timedelta``. Those are mapped onto a small set of cell
kinds, and each kind onto one native Python value.
"""
import enum
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from openpyxl.cell.cell import Cell

CellValue = Union[None, bool, datetime, timedelta, float, str]


class CellKind(enum.Enum):
    BLANK = "blank"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    TIMESPAN = "timespan"
    NUMBER = "number"
    TEXT = "text"
    OTHER = "other"


def cell_kind(cell: Cell) -> CellKind:
    """Declared kind of ``cell``. Errors and uncached formulas are OTHER."""
    value = cell.value
    if value is None:
        return CellKind.BLANK

    data_type = cell.data_type
    if data_type == "b":
        return CellKind.BOOLEAN
    if data_type == "d":
        if isinstance(value, (timedelta, time)):
            return CellKind.TIMESPAN
        if isinstance(value, date):
            return CellKind.DATETIME
        return CellKind.OTHER
    if data_type == "n":
        return CellKind.NUMBER
    if data_type in ("s", "inlineStr"):
        return CellKind.TEXT
    return CellKind.OTHER


def _as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time())


def _as_timedelta(value: Union[timedelta, time]) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(hours=value.hour, minutes=value.minute,
                     seconds=value.second, microseconds=value.microsecond)


def coerce_cell_value(cell: Optional[Cell]) -> CellValue:
    """
    Native value of ``cell``; ``None`` for absent cells and unrecognised kinds.

    Never raises: a value that does not fit its declared kind reads as None.
    """
    if cell is None:
        return None

    kind = cell_kind(cell)
    value = cell.value
    try:
        if kind is CellKind.BOOLEAN:
            return bool(value)
        if kind is CellKind.DATETIME:
            return _as_datetime(value)
        if kind is CellKind.TIMESPAN:
            return _as_timedelta(value)
        if kind is CellKind.NUMBER:
            return float(value)
        if kind is CellKind.TEXT:
            return str(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return None


def cell_text(cell: Optional[Cell]) -> str:
    """Text shown for a header cell: empty for blanks, ``str`` of the stored value otherwise."""
    if cell is None or cell.value is None:
        return ""
    return str(cell.value)
