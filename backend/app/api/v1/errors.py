from __future__ import annotations

from fastapi import HTTPException

from app.core.errors import StockError


def http_error(exc: ValueError) -> HTTPException:
    """Map a service-layer error onto the HTTP status the client should see."""
    if isinstance(exc, StockError):
        return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
    return HTTPException(status_code=409, detail=str(exc))
