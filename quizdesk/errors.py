"""Exceptions raised by the quiz components and mapped to HTTP responses."""


class QuizError(RuntimeError):
    """Base class for failures the web layer knows how to report."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class NotFound(QuizError):
    """Raised when an application, question or result id does not exist."""

    status_code = 404


class ValidationError(QuizError):
    """Raised when a request payload cannot be accepted as-is."""

    status_code = 400


class InvalidArgument(ValidationError):
    """Raised for out-of-range arguments such as a non-positive count."""


class CsvImportError(ValidationError):
    """Raised when an uploaded question file fails validation."""


class DuplicateName(QuizError):
    """Raised when an application name is already taken."""

    status_code = 409


class StoreUnavailable(QuizError):
    """Raised when the SQLite store cannot be reached or queried."""

    status_code = 503


class NoQuestionsAvailable(QuizError):
    """Raised when a quiz cannot start because the sampled set is empty."""

    status_code = 503


__all__ = [
    "QuizError",
    "NotFound",
    "ValidationError",
    "InvalidArgument",
    "CsvImportError",
    "DuplicateName",
    "StoreUnavailable",
    "NoQuestionsAvailable",
]
