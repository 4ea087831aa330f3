"""Domain errors shared by the repository, the API and the polling engine."""
from typing import Optional


class FareDropError(Exception):
    """Base class for expected application errors."""

    message = 'Application error'

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(FareDropError):
    message = 'Validation failed'

    def __init__(
        self,
        message: Optional[str] = None,
        required: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.required = required


class NotFoundError(FareDropError):
    message = 'Watch not found'


class UnauthorizedError(FareDropError):
    message = 'Invalid authentication token'


class ConfigurationError(FareDropError):
    """Raised when a required external credential is not configured."""

    message = 'Service is not configured'


class FareProviderError(FareDropError):
    """Raised when the quote provider rejects the credential exchange."""

    message = 'Fare provider error'
