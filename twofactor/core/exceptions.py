from __future__ import annotations


class AppError(Exception):
    """Base exception for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "Unexpected error"

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.__class__.message
        if code is not None:
            self.code = code
        super().__init__(self.message)


# --- Operator / data errors (not retryable) ---


class ConfigError(AppError):
    status_code = 500
    code = "config_error"
    message = "Two-factor encryption key is not configured"


class InternalError(AppError):
    status_code = 500
    code = "internal_error"
    message = "Unexpected error"


class SecretDecryptionError(InternalError):
    message = "Stored two-factor secret could not be decrypted"


# --- User-facing two-factor errors ---


class ValidationError(AppError):
    status_code = 422
    code = "validation_error"
    message = "Invalid code format"


class InvalidCodeError(AppError):
    status_code = 400
    code = "invalid_code"
    message = "Invalid verification code"


class SetupExpiredError(AppError):
    status_code = 400
    code = "setup_expired"
    message = "Setup expired. Please start again."


class AlreadyEnabledError(AppError):
    status_code = 409
    code = "already_enabled"
    message = "Two-factor authentication is already enabled"


class AuthenticationRequiredError(AppError):
    status_code = 401
    code = "authentication_required"
    message = "Authentication is required"
