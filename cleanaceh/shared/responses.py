"""
Standard API response envelope and pagination helpers.

Every JSON endpoint except the payment webhook answers with
{"status", "message", "data", "timestamp", "meta"?}.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 10


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def send_success(
    data: Any = None,
    message: str = "Success",
    status_code: int = 200,
    meta: Optional[dict] = None,
) -> JSONResponse:
    body = {
        "status": "success",
        "message": message,
        "data": data,
        "timestamp": _timestamp(),
    }
    if meta:
        body["meta"] = meta
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def send_error(message: str, status_code: int = 500, errors: Optional[list] = None) -> JSONResponse:
    body = {
        "status": "error",
        "message": message,
        "timestamp": _timestamp(),
    }
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def create_pagination(page: Optional[int] = None, limit: Optional[int] = None) -> Pagination:
    """Clamp raw query values into a usable page window"""
    page = max(1, page or 1)
    limit = min(MAX_PAGE_SIZE, max(1, limit or DEFAULT_PAGE_SIZE))
    return Pagination(page=page, limit=limit)


def send_paginated(
    data: list, pagination: Pagination, total: int, message: str = "Data retrieved successfully"
) -> JSONResponse:
    total_pages = math.ceil(total / pagination.limit) if total else 0
    meta = {
        "pagination": {
            "page": pagination.page,
            "limit": pagination.limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": pagination.page < total_pages,
            "hasPrev": pagination.page > 1,
        }
    }
    return send_success(data, message, 200, meta)
