import pytest
import json
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from app import exceptions


@pytest.mark.asyncio
async def test_api_exception_handler():
    exc = exceptions.UnauthorizedException()
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.api_exception_handler(request, exc)

    assert response.status_code == 401
    # JSONResponse body is bytes, need to decode and parse
    body = json.loads(response.body.decode())
    assert body == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_api_exception_handler_echoes_item_errors():
    items = [{"filename": "a.txt", "error": "Unsupported content type: text/plain", "code": "UnsupportedFormat"}]
    exc = exceptions.NoValidImagesException(items)
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.api_exception_handler(request, exc)

    assert response.status_code == 400
    body = json.loads(response.body.decode())
    assert body == {"error": "No valid image files uploaded", "items": items}


@pytest.mark.asyncio
async def test_http_exception_handler():
    exc = HTTPException(status_code=403, detail="Forbidden")
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.http_exception_handler(request, exc)

    assert response.status_code == 403
    body = json.loads(response.body.decode())
    assert body == {"error": "Forbidden"}


@pytest.mark.asyncio
async def test_generic_exception_handler():
    exc = ValueError("Something went wrong")
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.generic_exception_handler(request, exc)

    assert response.status_code == 500
    body = json.loads(response.body.decode())
    assert body == {"error": "An unexpected error occurred."}


def test_custom_exceptions_inherit_api_exception():
    exc = exceptions.InvalidImageException("Bad format")
    assert isinstance(exc, exceptions.APIException)
    assert exc.status_code == 400
    assert exc.code == "InvalidImage"
    assert "Bad format" in str(exc)


@pytest.mark.parametrize("exc, status", [
    (exceptions.NoFilesProvidedException(), 400),
    (exceptions.TooManyFilesException(50), 400),
    (exceptions.UnsupportedFormatException("nope"), 400),
    (exceptions.StorageFailureException("disk"), 500),
])
def test_status_codes(exc, status):
    assert exc.status_code == status
