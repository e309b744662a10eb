"""Exception hierarchy for minimax-chat."""

from __future__ import annotations


class MiniMaxChatError(Exception):
    """Base class for every error raised by this package."""


class InvalidOptionsError(MiniMaxChatError, TypeError):
    """Prompt options were not a ``ChatOptions`` instance."""

    def __init__(self, options: object) -> None:
        self.options_type = type(options).__name__
        super().__init__(
            f"Prompt options are not of type ChatOptions: {self.options_type}"
        )


class FunctionNotFoundError(MiniMaxChatError, LookupError):
    """A tool call or enabled function names an unregistered callback."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No function callback found for function name: {name}")


class StreamingFunctionCallNotSupportedError(MiniMaxChatError):
    """A streamed fragment asked for a tool call."""

    def __init__(self) -> None:
        super().__init__("Streaming Function calling is not supported")


class ToolRoundLimitExceededError(MiniMaxChatError):
    """The model kept requesting tool calls past the configured bound."""

    def __init__(self, max_rounds: int) -> None:
        self.max_rounds = max_rounds
        super().__init__(
            f"Model still requested tool calls after {max_rounds} round-trips"
        )


class MiniMaxApiError(MiniMaxChatError):
    """The MiniMax API reported a failure.

    ``status_code`` is either the HTTP status or the vendor's embedded
    ``base_resp.status_code``.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransientApiError(MiniMaxApiError):
    """A failure worth retrying: timeouts, transport errors, 429 and 5xx."""
