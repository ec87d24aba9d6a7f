"""Domain errors raised by services and mapped to HTTP responses in app.main."""


class WritingPracticeError(Exception):
    """Base class for expected, user-facing failures."""

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    default_message = "Request failed"


class InvalidArgument(WritingPracticeError):
    default_message = "Invalid request"


class Unauthorized(WritingPracticeError):
    default_message = "Unauthorized"


class NotFound(WritingPracticeError):
    # Same message for missing ids and ids owned by someone else
    default_message = "Not found"


class Conflict(WritingPracticeError):
    default_message = "Conflict"


class SessionClosed(WritingPracticeError):
    """Write attempted on a COMPLETED writing session. Terminal, not retried."""

    default_message = "This writing session is already completed"


class OrderConflict(WritingPracticeError):
    """Another writer claimed the message order first. Retry with a fresh count."""

    default_message = "The session was updated concurrently. Please retry."

    def __init__(self, message: str = "", session_id: str = None, order: int = None):
        super().__init__(message)
        self.session_id = session_id
        self.order = order
