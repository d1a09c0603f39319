"""
Excel Worksheet Reader

This package reads headers and typed rows from the worksheets of an Excel
workbook, driven by per-sheet settings, and reports failures per worksheet.

Key modules:
- main.py: FastAPI application with the upload endpoints
- excel_sheet_reader.py: Workbook opening and per-sheet header/body reading
- utils/parameters.py: Per-sheet settings and their defaults
- utils/columns.py: Column letters, ranges and column selection
- utils/cells.py: Cell kinds and value coercion
- utils/result.py: Result pattern implementation for error handling
"""
