"""
Per-worksheet reading parameters.

The caller supplies a plain mapping ``{sheet_name: {setting: value}}``. Values
arrive untyped (usually decoded from JSON), so every value is first classified
into a ``SettingKind`` and then resolved by matching on that kind. A value of
the wrong kind silently falls back to the default.
"""
import enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

HAS_HEADERS = "hasHeaders"
HEADER_ROW = "headerRow"
BODY_ROW = "bodyRow"
COLUMNS = "cols"

Parameters = Dict[str, Dict[str, Any]]


class SettingKind(enum.Enum):
    ABSENT = "absent"
    BOOL = "bool"
    INT = "int"
    INT_LIST = "int_list"
    STRING = "string"
    OTHER = "other"


_MISSING = object()


def classify_setting(value: Any) -> SettingKind:
    """Tag a raw setting value. ``bool`` is checked before ``int`` since it subclasses it."""
    if value is _MISSING:
        return SettingKind.ABSENT
    if isinstance(value, bool):
        return SettingKind.BOOL
    if isinstance(value, int):
        return SettingKind.INT
    if isinstance(value, str):
        return SettingKind.STRING
    if isinstance(value, (list, tuple)) and all(
        isinstance(item, int) and not isinstance(item, bool) for item in value
    ):
        return SettingKind.INT_LIST
    return SettingKind.OTHER


def get_setting(parameters: Parameters, sheet_name: str, key: str) -> Any:
    """Raw value of ``key`` for ``sheet_name``, or a sentinel classified as ABSENT."""
    return parameters.get(sheet_name, {}).get(key, _MISSING)


def get_bool_parameter_or_default(parameters: Parameters, sheet_name: str, key: str,
                                  default_value: bool = False) -> bool:
    value = get_setting(parameters, sheet_name, key)
    if classify_setting(value) is SettingKind.BOOL:
        return value
    return default_value


def get_int_parameter_or_default(parameters: Parameters, sheet_name: str, key: str,
                                 default_value: int = 0) -> int:
    value = get_setting(parameters, sheet_name, key)
    if classify_setting(value) is SettingKind.INT:
        return value
    return default_value


class SheetSettings(BaseModel):
    """
    Effective settings for one worksheet.

    Attributes:
        has_headers: Whether a header row is read at all
        header_row: Absolute 1-based row number holding the headers
        body_row: Offset from the worksheet's first used row where body data starts
        columns: Explicit column indices, a "A:B" range string, or None for all used columns.
            Values of any other kind are kept as ``columns_invalid`` and select no column.
    """
    has_headers: bool = True
    header_row: int = 0
    body_row: int = 0
    columns: Optional[Union[List[int], str]] = None
    columns_invalid: bool = False


def resolve_sheet_settings(parameters: Parameters, sheet_name: str) -> SheetSettings:
    """Resolve every recognised setting of ``sheet_name`` against its default."""
    raw_columns = get_setting(parameters, sheet_name, COLUMNS)
    kind = classify_setting(raw_columns)

    columns: Optional[Union[List[int], str]] = None
    if kind is SettingKind.INT_LIST:
        columns = list(raw_columns)
    elif kind is SettingKind.STRING:
        columns = raw_columns

    return SheetSettings(
        has_headers=get_bool_parameter_or_default(parameters, sheet_name, HAS_HEADERS, default_value=True),
        header_row=get_int_parameter_or_default(parameters, sheet_name, HEADER_ROW),
        body_row=get_int_parameter_or_default(parameters, sheet_name, BODY_ROW),
        columns=columns,
        columns_invalid=kind not in (SettingKind.ABSENT, SettingKind.INT_LIST, SettingKind.STRING),
    )
