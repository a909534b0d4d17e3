# errors.py
from typing import Optional

from fastapi.responses import JSONResponse

from models import OAuthError

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


class AppError(Exception):
    """Upstream or request failure classified to the HTTP status it should surface as."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"AppError({self.message!r}, {self.status_code})"


def oauth_error_response(
    error: str,
    description: Optional[str] = None,
    status_code: int = 400,
    state: Optional[str] = None,
) -> JSONResponse:
    body = OAuthError(error=error, error_description=description or None, state=state or None)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code, headers=NO_STORE_HEADERS)
