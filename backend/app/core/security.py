from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.core.config import get_settings


security = HTTPBasic(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Basic"})


def require_basic_auth(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    """
    Authenticate a staff member and return the user name used as audit actor.
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    staff = get_settings().staff_credentials
    # Compare against every account so timing does not reveal which user names exist.
    matched: str | None = None
    for username, password in staff.items():
        valid_user = secrets.compare_digest(credentials.username.encode(), username.encode())
        valid_pass = secrets.compare_digest(credentials.password.encode(), password.encode())
        if valid_user and valid_pass:
            matched = username
    if matched is None:
        raise _unauthorized("Invalid credentials")
    return matched
