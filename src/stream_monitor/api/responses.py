"""Response envelope shared by all API routes.

Successful calls return ``{"success": true, "data": ...}``, failures
``{"success": false, "message": ...}``.
"""

from typing import Any

from fastapi import Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def ok(data: Any = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    content: dict[str, Any] = {"success": True}
    if data is not None:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content=content)


def error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


def no_content() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)
