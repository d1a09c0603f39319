"""
Exception types raised while reading worksheets.

Only ``WorkbookOpenError`` is fatal for a whole extraction call; the others are
caught at the worksheet boundary and turned into error messages.
"""


class ExcelReaderError(Exception):
    """Base class for all worksheet reading errors."""


class WorkbookOpenError(ExcelReaderError):
    """The byte stream is empty, corrupt or not a supported workbook."""


class SheetNotFoundError(ExcelReaderError):
    """A configured worksheet does not exist in the workbook."""

    def __init__(self, sheet_name: str):
        self.sheet_name = sheet_name
        super().__init__(f"Worksheet '{sheet_name}' not found in Excel file.")


class RangeFormatError(ExcelReaderError, ValueError):
    """A textual column range does not split into exactly two parts."""

    def __init__(self, message: str = "Invalid column range."):
        super().__init__(message)


class SheetReadError(ExcelReaderError):
    """Any other failure while reading a worksheet's headers or body."""
