"""Error taxonomy shared by the conversation engine and its collaborators."""


class BlogBotError(Exception):
    """Base error carrying a machine code and an optional user-facing message."""

    def __init__(self, message: str, code: str, user_message: str | None = None):
        super().__init__(message)
        self.code = code
        self.user_message = user_message


class ValidationError(BlogBotError):
    """User input is malformed or outside policy. Never advances state."""

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message, "VALIDATION_ERROR", user_message)


class ProcessingError(BlogBotError):
    """A valid input failed inside a transform the bot owns (resize, upload)."""

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message, "PROCESSING_ERROR", user_message)


class ExternalServiceError(BlogBotError):
    """A downstream service rejected or failed a call."""

    def __init__(self, message: str, service: str, user_message: str | None = None):
        super().__init__(message, f"{service.upper()}_ERROR", user_message)
        self.service = service


class TransitionError(BlogBotError):
    """An illegal state-machine transition was requested."""

    def __init__(self, message: str):
        super().__init__(message, "TRANSITION_ERROR")


class ConcurrentUpdateError(BlogBotError):
    """The stored session moved on between read and write."""

    def __init__(self, message: str):
        super().__init__(message, "CONCURRENT_UPDATE")
