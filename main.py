from fastapi import FastAPI, status, File, Form, UploadFile
import os
import json
import logging
from datetime import datetime
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from excel_sheet_reader import ExtractionOutcome, SheetReader
from utils.errors import WorkbookOpenError
from utils.result import Result


# Create logs directory if it doesn't exist
LOG_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "logs")
os.makedirs(LOG_DIR, exist_ok=True)

API_TITLE = "Excel Worksheet Reader API"
API_VERSION = "1.0.0"

# Uploads above this size are rejected before the workbook is opened
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_EXTENSIONS = (".xlsx", ".xlsm", ".xltx", ".xltm")

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Add file handler to write logs to file
log_file_path = os.path.join(LOG_DIR, f"app_{datetime.now().strftime('%Y%m%d')}.log")
file_handler = logging.FileHandler(log_file_path)
file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
logger.addHandler(file_handler)


# Initialize FastAPI app with metadata
app = FastAPI(
    title=API_TITLE,
    description="API for reading headers and typed rows from Excel worksheets",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def parse_parameters(raw_parameters: str) -> Result[dict]:
    """
    Decode the per-sheet reading parameters sent with an upload.

    Args:
        raw_parameters (str): JSON object mapping sheet names to setting objects,
            e.g. {"Data": {"hasHeaders": true, "headerRow": 1, "bodyRow": 1, "cols": "A:B"}}

    Returns:
        Result[dict]: The decoded mapping, or a 400 failure describing the problem
    """
    try:
        parameters = json.loads(raw_parameters)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid parameters JSON: {str(e)}")
        return Result.invalid_input(f"Parameters are not valid JSON: {str(e)}")

    if not isinstance(parameters, dict):
        return Result.invalid_input("Parameters must be a JSON object keyed by worksheet name")

    invalid_sheets = [name for name, settings in parameters.items() if not isinstance(settings, dict)]
    if invalid_sheets:
        return Result.invalid_input(
            f"Settings must be JSON objects for worksheet(s): {', '.join(invalid_sheets)}"
        )

    return Result.ok(parameters)


def validate_upload(file: UploadFile) -> Result[UploadFile]:
    """
    Check the upload's extension and size before it is read.

    Args:
        file (UploadFile): The uploaded workbook

    Returns:
        Result[UploadFile]: The upload, or a 400/413 failure
    """
    extension = os.path.splitext(file.filename or "")[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        logger.warning(f"Rejected upload with unsupported extension: {file.filename}")
        return Result.invalid_input(
            f"Unsupported file type '{extension or file.filename}'. Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
        )

    if file.size is not None and file.size > MAX_UPLOAD_BYTES:
        logger.warning(f"Rejected upload of {file.size} bytes: {file.filename}")
        return Result.fail(
            f"File exceeds the maximum size of {MAX_UPLOAD_BYTES} bytes",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        )

    return Result.ok(file)


def error_response(result: Result) -> JSONResponse:
    return JSONResponse(status_code=result.status_code.value, content={"error": result.error})


# API Endpoints
@app.post(
    "/extract/",
    tags=["Excel Processing"],
    response_model=ExtractionOutcome
)
async def extract_worksheets(file: UploadFile = File(...), parameters: str = Form(...)):
    """
    Read headers and rows from the configured worksheets of an uploaded workbook.

    Returns:
        ExtractionOutcome: worksheets keyed by name and one error message per failed
        worksheet. A 200 response can still carry errors for some worksheets; a 400
        response with a single error means the workbook could not be opened.
    """
    logger.info(f"Received workbook for extraction: {file.filename}")

    parameters_result = parse_parameters(parameters)
    if parameters_result.is_failure():
        return error_response(parameters_result)

    upload_result = validate_upload(file)
    if upload_result.is_failure():
        return error_response(upload_result)

    outcome = await SheetReader.read_workbook_async(file, parameters_result.data)

    if not outcome.opened:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=jsonable_encoder(outcome))
    return outcome


@app.post(
    "/sheets/",
    tags=["Excel Processing"]
)
async def list_worksheets(file: UploadFile = File(...)):
    """
    List the worksheet names of an uploaded workbook.

    Returns:
        dict: {"sheets": [...]} in workbook order
    """
    upload_result = validate_upload(file)
    if upload_result.is_failure():
        return error_response(upload_result)

    data = await file.read()
    try:
        sheets = SheetReader.list_sheets(data)
    except WorkbookOpenError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": f"Error opening Excel file: {str(e)}"}
        )

    logger.info(f"Workbook {file.filename} has {len(sheets)} worksheet(s)")
    return {"sheets": sheets}


# Run the application if executed directly
if __name__ == "__main__":
    import uvicorn
    logger.info("Starting Excel Worksheet Reader API in development mode.")
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
