# cadiapp/errors.py
"""
Error taxonomy shared by the booking core and the HTTP layer.

Every error carries a stable `kind` and a translation key. The localized text is
resolved later by the exception handler in `cadiapp.main`, so service code only
picks *which* error happened.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    kind = "error"
    default_key = "errors.internal"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, translation_key: Optional[str] = None, params: Optional[dict] = None, message: Optional[str] = None,
                 headers: Optional[dict] = None):
        self.translation_key = translation_key or self.default_key
        self.params = dict(params or {})
        self.message = message or self.translation_key
        super().__init__(
            status_code=self.status_code_default,
            detail={"kind": self.kind, "key": self.translation_key, "params": self.params},
            headers=headers,
        )

    def __str__(self) -> str:
        return f"{self.kind}: {self.translation_key}"


class BadRequestError(AppError):
    kind = "bad_request"
    default_key = "errors.badRequest"
    status_code_default = status.HTTP_400_BAD_REQUEST


class ValidationError(AppError):
    kind = "validation"
    default_key = "errors.validation"
    status_code_default = 422


class UnauthorizedError(AppError):
    kind = "unauthorized"
    default_key = "errors.unauthorized"
    status_code_default = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    kind = "forbidden"
    default_key = "errors.forbidden"
    status_code_default = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    kind = "not_found"
    default_key = "errors.notFound"
    status_code_default = status.HTTP_404_NOT_FOUND


class InvalidStateError(AppError):
    kind = "invalid_state"
    default_key = "booking.invalidStatus"
    status_code_default = status.HTTP_409_CONFLICT
