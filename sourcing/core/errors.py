"""Pipeline exceptions for the developer sourcing engine."""


class SourcingError(Exception):
    """Base exception for fatal pipeline errors."""


class LLMCallError(SourcingError):
    """Raised when an inference call fails at the transport level."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"LLM call failed during {stage}: {cause}")


class LLMResponseError(SourcingError, ValueError):
    """Raised when a model response cannot be parsed or fails validation.

    The raw response text is kept for diagnosis.
    """

    def __init__(self, stage: str, reason: str, raw_text: str = ""):
        self.stage = stage
        self.reason = reason
        self.raw_text = raw_text
        super().__init__(f"Invalid {stage} response: {reason}")
