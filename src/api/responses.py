"""Response envelope shared by every endpoint.

Shape: ``{success, message?, data?, errors?, code?}``.
"""

from typing import Any, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(
    success: bool = True,
    message: Optional[str] = None,
    data: Any = None,
    errors: Optional[List[str]] = None,
    code: Optional[str] = None,
    **extra: Any,
) -> dict:
    """Build an envelope dict, leaving out keys that have no value."""
    body: dict = {"success": success}
    if message is not None:
        body["message"] = message
    if code is not None:
        body["code"] = code
    if data is not None:
        body["data"] = data
    if errors:
        body["errors"] = errors
    body.update(extra)
    return jsonable_encoder(body)


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = 200,
    **extra: Any,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(True, message=message, data=data, **extra),
    )


def error_response(
    status_code: int,
    message: str,
    errors: Optional[List[str]] = None,
    code: Optional[str] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(False, message=message, errors=errors, code=code),
        headers=headers,
    )
