from typing import Optional


class CMSError(Exception):
    """
    Base class for domain errors.

    Each subclass carries the HTTP status and the stable machine-readable
    code the exception handlers in main.py render. Services raise these at
    the point of detection; nothing in the service layer catches them.
    """

    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "Bad request"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(CMSError):
    status_code = 400
    code = "bad_request"
    default_message = "Bad request"


class DuplicateEmailError(CMSError):
    status_code = 409
    code = "duplicate_email"
    default_message = "Email is already registered"


class InvalidCredentialsError(CMSError):
    """Unknown email, wrong password and inactive account all look the same."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Incorrect email or password"


class UnauthorizedError(CMSError):
    status_code = 401
    code = "unauthorized"
    default_message = "Could not validate credentials"


class InvalidRefreshTokenError(UnauthorizedError):
    default_message = "Invalid or expired refresh token"


class ForbiddenError(CMSError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFoundError(CMSError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ConflictError(CMSError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class TokenError(Exception):
    """Raised by token verification; callers translate it to UnauthorizedError."""


class InvalidSignatureError(TokenError):
    pass


class TokenExpiredError(TokenError):
    pass
