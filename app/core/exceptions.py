"""
Typed application errors. Each carries the HTTP status the API layer maps it to.
"""


class AppError(Exception):
    """Base application error"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(AppError):
    """Bad input shape or an unknown choice/type literal"""

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, 400)


class PermissionDeniedError(AppError):
    """A non-creator tried to mutate something only the creator may touch"""

    def __init__(self, message: str = "You don't have permission to perform this action"):
        super().__init__(message, 403)


class NotFoundError(AppError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class ExternalLookupError(AppError):
    """Place/movie provider failed, timed out or returned garbage"""

    def __init__(self, message: str = "External lookup failed"):
        super().__init__(message, 502)


class PersistenceError(AppError):
    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(message, 500)
