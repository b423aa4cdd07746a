"""
app/core/responses.py — JSON envelope
  success: {"success": true, "data": ..., "meta"?: ...}
  failure: {"success": false, "error": {"code", "message", "details"?, "retry_after_seconds"?}}
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.models import ApiError, ErrorCode, ValidationErrorDetail


def success_response(
    data: Any,
    meta: Optional[Any] = None,
    status_code: int = 200,
) -> JSONResponse:
    content: dict[str, Any] = {"success": True, "data": data}
    if meta is not None:
        content["meta"] = meta
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    details: Optional[list[ValidationErrorDetail]] = None,
    retry_after_seconds: Optional[int] = None,
) -> JSONResponse:
    error = ApiError(
        code=code,
        message=message,
        details=details,
        retry_after_seconds=retry_after_seconds,
    )
    headers = {"Retry-After": str(retry_after_seconds)} if retry_after_seconds else None
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error.model_dump(mode="json", exclude_none=True)},
        headers=headers,
    )
