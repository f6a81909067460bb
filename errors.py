"""
Error taxonomy shared by every route.

Each error knows its HTTP status and renders itself as the
``{"success": false, "error": ..., "details": ...}`` envelope.
"""
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse


class ServiceError(Exception):
    status_code = 500
    default_error = "Internal server error."

    def __init__(self, error: Optional[str] = None, details: Optional[str] = None, **extra: Any):
        self.error = error or self.default_error
        self.details = details
        self.extra: Dict[str, Any] = extra
        super().__init__(self.error)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.error}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


# 400: the caller's fault

class ValidationError(ServiceError):
    status_code = 400
    default_error = "Invalid request."


class DuplicateEmailError(ServiceError):
    status_code = 400
    default_error = "Email already registered."


class UserNotFoundError(ServiceError):
    status_code = 400
    default_error = "User not found."


class InvalidPasswordError(ServiceError):
    status_code = 400
    default_error = "Invalid password."


# 500: the service or the model provider

class UpstreamEmptyResponseError(ServiceError):
    default_error = "Empty response from the model."


class ResponseParseError(ServiceError):
    default_error = "Failed to parse model response."


class UpstreamCallError(ServiceError):
    default_error = "Failed to analyze image."


class InternalError(ServiceError):
    pass
