import io
import logging
import time
import uuid
from typing import Any, BinaryIO, Dict, List, NamedTuple, Optional, Union

import pandas as pd
from openpyxl import load_workbook
from openpyxl.cell.cell import Cell
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet
from pydantic import BaseModel

from utils.cells import CellValue, cell_text, coerce_cell_value
from utils.columns import resolve_columns
from utils.errors import (
    ExcelReaderError,
    RangeFormatError,
    SheetNotFoundError,
    SheetReadError,
    WorkbookOpenError,
)
from utils.parameters import Parameters, SheetSettings, resolve_sheet_settings
from utils.result import Result

logger = logging.getLogger(__name__)

WorkbookSource = Union[bytes, bytearray, BinaryIO]


class LogContext:
    """Context manager for tracking and logging operation metrics"""
    def __init__(self, operation_name: str, **kwargs):
        self.operation_name = operation_name
        self.start_time = None
        self.request_id = kwargs.get('request_id', str(uuid.uuid4())[:8])
        self.extra = {key: value for key, value in kwargs.items() if key != 'request_id'}

    def __enter__(self):
        self.start_time = time.time()
        logger.info(f"Starting {self.operation_name}", extra={"request_id": self.request_id, **self.extra})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time
        if exc_type:
            logger.error(
                f"Failed {self.operation_name} in {duration:.2f}s: {str(exc_val)}",
                extra={"request_id": self.request_id, "duration": duration, **self.extra},
                exc_info=(exc_type, exc_val, exc_tb)
            )
        else:
            logger.info(
                f"Completed {self.operation_name} in {duration:.2f}s",
                extra={"request_id": self.request_id, "duration": duration, **self.extra}
            )


class WorksheetData(BaseModel):
    """
    Headers and body rows read from one worksheet.

    Attributes:
        headers: Header texts in column order (empty when the sheet has no headers)
        rows: Body rows, each holding one coerced value per selected column
    """
    headers: List[str] = []
    rows: List[List[CellValue]] = []

    def to_frame(self) -> pd.DataFrame:
        """
        Rows as a DataFrame.

        Headers label the columns when there is exactly one header per column;
        otherwise the columns are numbered.
        """
        width = max((len(row) for row in self.rows), default=len(self.headers))
        columns = self.headers if self.headers and len(self.headers) == width else None
        if not self.rows:
            return pd.DataFrame(columns=columns if columns is not None else range(width))
        return pd.DataFrame(self.rows, columns=columns)


class ExtractionOutcome(BaseModel):
    """
    Result of reading a workbook.

    Both containers are always present. A non-empty ``worksheets`` can come
    with errors for other sheets, so callers must check ``errors`` as well.

    Attributes:
        success: True when no error was recorded
        opened: False when the workbook itself could not be opened
        worksheets: Sheet name to its data, in configuration order
        errors: One message per failed sheet, or the single open failure
    """
    success: bool = True
    opened: bool = True
    worksheets: Dict[str, WorksheetData] = {}
    errors: List[str] = []


class UsedRange(NamedTuple):
    """Bounds of a worksheet's used cells, read once before any cell is accessed."""
    min_row: int
    max_row: int
    min_column: int
    max_column: int

    @classmethod
    def of(cls, worksheet: Worksheet) -> "UsedRange":
        return cls(worksheet.min_row, worksheet.max_row, worksheet.min_column, worksheet.max_column)

    def contains(self, row: int, column: int) -> bool:
        return self.min_row <= row <= self.max_row and self.min_column <= column <= self.max_column


def _read_source(source: WorkbookSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    try:
        data = source.read()
    except (OSError, ValueError, AttributeError, TypeError) as e:
        raise WorkbookOpenError(f"Could not read file: {str(e)}") from e
    if not isinstance(data, (bytes, bytearray)):
        raise WorkbookOpenError(f"Expected binary data, got {type(data).__name__}")
    return bytes(data)


def _cell_at(worksheet: Worksheet, row: int, column: int, used_range: UsedRange) -> Optional[Cell]:
    """Cell at (row, column) or None when the address lies outside the used range."""
    if not used_range.contains(row, column):
        return None
    return worksheet.cell(row=row, column=column)


class SheetReader:
    """
    Reads headers and typed body rows from the worksheets of a workbook.

    For every configured sheet the reader:
    - Resolves the sheet's settings (header row, body offset, columns)
    - Reads the header texts
    - Reads body rows and drops the ones without any value
    Failures are isolated per sheet and reported as messages.
    """

    @staticmethod
    async def read_workbook_async(upload: Any, parameters: Parameters) -> ExtractionOutcome:
        """
        Read an uploaded workbook whose ``read()`` is a coroutine (e.g. FastAPI ``UploadFile``).

        The upload is fully buffered before any worksheet is processed. A failing
        read is reported like any other workbook that cannot be opened.
        """
        try:
            data = await upload.read()
        except (OSError, ValueError, AttributeError, TypeError) as e:
            error = f"Error opening Excel file: Could not read file: {str(e)}"
            logger.warning(f"Upload could not be read: {str(e)}", extra={"error_type": type(e).__name__})
            return ExtractionOutcome(success=False, opened=False, worksheets={}, errors=[error])
        return SheetReader.read_workbook(data, parameters)

    @staticmethod
    def read_workbook(source: WorkbookSource, parameters: Parameters) -> ExtractionOutcome:
        """
        Read every worksheet named in ``parameters``.

        Args:
            source: Workbook bytes or a binary stream
            parameters: Sheet name to its settings (hasHeaders, headerRow, bodyRow, cols)

        Returns:
            ExtractionOutcome: Worksheet data and error messages; never raises
        """
        request_id = str(uuid.uuid4())[:8]
        log_context = {"request_id": request_id, "sheet_count": len(parameters)}
        worksheets: Dict[str, WorksheetData] = {}
        errors: List[str] = []

        with LogContext("workbook read", **log_context):
            open_result = SheetReader._open(source)
            if open_result.is_failure():
                logger.warning(f"Workbook could not be opened: {open_result.error}", extra=log_context)
                return ExtractionOutcome(success=False, opened=False, worksheets={}, errors=[open_result.error])

            workbook = open_result.data
            try:
                for sheet_name in list(parameters.keys()):
                    result = SheetReader._read_sheet(workbook, sheet_name, parameters, request_id)
                    if result.is_success():
                        worksheets[sheet_name] = result.data
                    else:
                        errors.append(result.error)
            finally:
                workbook.close()

        logger.info(
            f"Read {len(worksheets)} worksheet(s) with {len(errors)} error(s)",
            extra={**log_context, "error_count": len(errors)}
        )
        return ExtractionOutcome(success=not errors, opened=True, worksheets=worksheets, errors=errors)

    @staticmethod
    def list_sheets(source: WorkbookSource) -> List[str]:
        """
        Names of the worksheets in a workbook.

        Raises:
            WorkbookOpenError: If the source is not a readable workbook
        """
        workbook = SheetReader._open_workbook(_read_source(source))
        try:
            return list(workbook.sheetnames)
        finally:
            workbook.close()

    @staticmethod
    def _open(source: WorkbookSource) -> Result[Workbook]:
        try:
            return Result.ok(SheetReader._open_workbook(_read_source(source)))
        except WorkbookOpenError as e:
            return Result.invalid_input(f"Error opening Excel file: {str(e)}")

    @staticmethod
    def _open_workbook(data: bytes) -> Workbook:
        """
        Load a workbook from memory with cached formula values.

        Raises:
            WorkbookOpenError: If the data is empty, corrupt or not a supported workbook
        """
        if not data:
            raise WorkbookOpenError("File is empty")
        try:
            return load_workbook(io.BytesIO(data), data_only=True)
        except Exception as e:
            logger.error(
                "Failed to open workbook",
                extra={"error": str(e), "error_type": type(e).__name__, "size": len(data)}
            )
            raise WorkbookOpenError(str(e) or type(e).__name__) from e

    @staticmethod
    def _get_worksheet(workbook: Workbook, sheet_name: str) -> Worksheet:
        if sheet_name not in workbook.sheetnames:
            raise SheetNotFoundError(sheet_name)
        return workbook[sheet_name]

    @staticmethod
    def _read_sheet(workbook: Workbook, sheet_name: str, parameters: Parameters,
                    request_id: str) -> Result[WorksheetData]:
        """
        Read one worksheet into a Result.

        A missing sheet fails with 404, a malformed column range with 400 and any
        other read failure with 500.
        """
        log_context = {"request_id": request_id, "sheet_name": sheet_name}
        try:
            worksheet = SheetReader._get_worksheet(workbook, sheet_name)
        except SheetNotFoundError as e:
            logger.warning("Worksheet not found", extra=log_context)
            return Result.sheet_not_found(str(e))

        try:
            with LogContext(f"worksheet read '{sheet_name}'", **log_context):
                data = SheetReader._extract(worksheet, parameters, sheet_name)
        except RangeFormatError as e:
            return Result.invalid_input(f"Error reading Excel file: {str(e)}")
        except ExcelReaderError as e:
            return Result.server_error(f"Error reading Excel file: {str(e)}")

        logger.info(
            "Worksheet read",
            extra={**log_context, "header_count": len(data.headers), "row_count": len(data.rows)}
        )
        return Result.ok(data)

    @staticmethod
    def _extract(worksheet: Worksheet, parameters: Parameters, sheet_name: str) -> WorksheetData:
        try:
            used_range = UsedRange.of(worksheet)
            settings = resolve_sheet_settings(parameters, sheet_name)
            columns = resolve_columns(settings, worksheet)
            headers = SheetReader._read_headers(worksheet, settings, columns, used_range)
            rows = SheetReader._read_body(worksheet, settings, columns, used_range)
            return WorksheetData(headers=headers, rows=rows)
        except ExcelReaderError:
            raise
        except Exception as e:
            raise SheetReadError(str(e) or type(e).__name__) from e

    @staticmethod
    def _read_headers(worksheet: Worksheet, settings: SheetSettings, columns: List[int],
                      used_range: UsedRange) -> List[str]:
        """Header texts at the absolute row ``header_row``, in column order."""
        if not settings.has_headers:
            return []
        return [cell_text(_cell_at(worksheet, settings.header_row, column, used_range)) for column in columns]

    @staticmethod
    def _read_body(worksheet: Worksheet, settings: SheetSettings, columns: List[int],
                   used_range: UsedRange) -> List[List[CellValue]]:
        """
        Body rows starting ``body_row`` rows below the first used row.

        The span holds ``(last used row - first used row) - body_row`` rows, so the
        last used row itself is never part of it. Rows without any non-null value
        are dropped; kept rows preserve their nulls.
        """
        row_count = (used_range.max_row - used_range.min_row) - settings.body_row
        start_row = used_range.min_row + settings.body_row

        rows = []
        for row in range(start_row, start_row + max(row_count, 0)):
            values = [coerce_cell_value(_cell_at(worksheet, row, column, used_range)) for column in columns]
            if any(value is not None for value in values):
                rows.append(values)
        return rows
