"""Exception hierarchy for flowbridge"""


class FlowbridgeError(Exception):
    """Base error for all flowbridge errors."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class GenerationError(FlowbridgeError):
    """The external generation service failed or returned an unusable document."""

    def __init__(self, message: str, *, status_code: int | None = None, cause: Exception | None = None) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code
