"""
Detection Errors
=================
Every failure of a detection run is raised as a DetectionError subclass.
None of them are retried inside the run; the service layer maps each kind
to its own HTTP status and error code so callers can tell schema drift,
misbehaving models and provider outages apart.
"""


class DetectionError(Exception):
    """Base class for all fatal detection-run failures."""

    code: str = "detection_error"
    status_code: int = 500


class UnknownToolError(DetectionError):
    """The model asked for a tool that is not registered."""

    code = "unknown_tool"

    def __init__(self, name: str):
        super().__init__(f"Unexpected tool call: {name}")
        self.name = name


class InvalidToolArgumentsError(DetectionError):
    """Tool-call arguments did not decode into the tool's argument model."""

    code = "invalid_tool_arguments"

    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid arguments for tool '{name}': {reason}")
        self.name = name


class MalformedResultError(DetectionError):
    """The model's final answer does not match the verdict schema."""

    code = "malformed_result"


class UnexpectedFinishReasonError(DetectionError):
    code = "unexpected_finish_reason"

    def __init__(self, finish_reason: str | None, detail: str | None = None):
        message = f"Unexpected finish reason: {finish_reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.finish_reason = finish_reason


class ExceededMaxRoundsError(DetectionError):
    code = "exceeded_max_rounds"

    def __init__(self, max_rounds: int):
        super().__init__(f"Model did not produce a final answer within {max_rounds} rounds")
        self.max_rounds = max_rounds


class RunDeadlineExceededError(DetectionError):
    code = "run_deadline_exceeded"
    status_code = 504

    def __init__(self, deadline: float):
        super().__init__(f"Detection run exceeded its deadline of {deadline}s")
        self.deadline = deadline


class ModelProviderError(DetectionError):
    """Transport or HTTP failure talking to the chat-completions endpoint."""

    code = "model_provider_error"
    status_code = 502


class UrlScannerError(DetectionError):
    """Transport or HTTP failure inside a URL scanner backend."""

    code = "url_scanner_error"
    status_code = 502
