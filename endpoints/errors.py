# errors.py
"""Error response model shared by the gateway routers."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str

# Every failure body is {"error": message}
RESP_ERRORS = {
    400: {"model": ErrorResponse, "description": "Bad Request"},
    500: {"model": ErrorResponse, "description": "Database Error"},
}
