"""
    Centralized exception handling for the FastAPI application.
"""
from typing import List, Optional
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
import logging

log = logging.getLogger(__name__)

class APIException(Exception):
    """Base class for API exceptions."""
    code = "APIError"

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

class NoFilesProvidedException(APIException):
    """Exception for upload requests carrying no files."""
    code = "NoFilesProvided"

    def __init__(self):
        super().__init__(status_code=400, detail="No files uploaded")

class TooManyFilesException(APIException):
    """Exception for upload requests over the per-request file limit."""
    code = "TooManyFiles"

    def __init__(self, limit: int):
        super().__init__(status_code=400, detail=f"Too many files, at most {limit} allowed per request")

class FileTooLargeException(APIException):
    """Exception for a single file over the size limit."""
    code = "FileTooLarge"

    def __init__(self, filename: str, limit: int):
        super().__init__(status_code=400, detail=f"File '{filename}' exceeds {limit} bytes")

class UnsupportedFormatException(APIException):
    """Exception for files whose declared or sniffed type is not allowed."""
    code = "UnsupportedFormat"

    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

class InvalidImageException(APIException):
    """Exception for files that cannot be decoded or have no dimensions."""
    code = "InvalidImage"

    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)

class NoValidImagesException(APIException):
    """Exception for batch uploads where every item failed."""
    code = "NoValidImages"

    def __init__(self, items: Optional[List[dict]] = None):
        self.items = items or []
        super().__init__(status_code=400, detail="No valid image files uploaded")

class UnauthorizedException(APIException):
    """Exception for endpoints requiring an authenticated caller."""
    code = "Unauthorized"

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=401, detail=detail)

class StorageFailureException(APIException):
    """Exception for unreadable directories and failed writes."""
    code = "StorageFailure"

    def __init__(self, detail: str, items: Optional[List[dict]] = None):
        self.items = items
        super().__init__(status_code=500, detail=detail)

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    log.error(f"API Exception: {exc.detail}", exc_info=exc)
    content = {"error": exc.detail}
    items = getattr(exc, "items", None)
    if items is not None:
        content["items"] = items
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.error(f"HTTP Exception: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred."},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
