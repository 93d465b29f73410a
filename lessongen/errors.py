"""Error taxonomy for lesson generation and lesson storage."""

from lessongen.models import ErrorInfo, ErrorKind


class GenerationError(Exception):
    """Base class for failures of a generation attempt.

    The message is shown to the user as-is.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(kind=self.kind, message=self.message)


class InvalidInput(GenerationError):
    """Raised when the request is rejected before any network call."""

    kind = ErrorKind.INVALID_INPUT


class ProviderUnavailable(GenerationError):
    """Raised when the provider cannot be reached or reports a failure."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE


class GenerationTimeout(GenerationError):
    """Raised when the poll budget runs out while the job is still pending."""

    kind = ErrorKind.TIMEOUT


class MalformedResponse(GenerationError):
    """Raised when a provider payload fails structural validation."""

    kind = ErrorKind.MALFORMED_RESPONSE


class LessonStoreError(Exception):
    """Raised when a lesson cannot be read from or written to the backend."""

    pass


class LessonNotFound(LessonStoreError):
    """Raised when no lesson exists for the given id."""

    pass
