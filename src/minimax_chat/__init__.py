"""MiniMax chat completion client with function calling."""

from minimax_chat.api import MiniMaxApi
from minimax_chat.chat_client import MiniMaxChatClient
from minimax_chat.config import ClientConfig, StreamErrorPolicy, load_config
from minimax_chat.errors import (
    FunctionNotFoundError,
    InvalidOptionsError,
    MiniMaxApiError,
    MiniMaxChatError,
    StreamingFunctionCallNotSupportedError,
    ToolRoundLimitExceededError,
    TransientApiError,
)
from minimax_chat.function_calling import FunctionCallingController
from minimax_chat.functions import FunctionCallback, FunctionCallbackRegistry, FunctionParameter
from minimax_chat.options import MiniMaxChatOptions
from minimax_chat.prompt import ChatOptions, ChatResponse, Generation, MessageType, Prompt, PromptMessage
from minimax_chat.retry import RetryPolicy
from minimax_chat.types import ChatModel

__version__ = "0.1.0"

__all__ = [
    "ChatModel",
    "ChatOptions",
    "ChatResponse",
    "ClientConfig",
    "FunctionCallback",
    "FunctionCallbackRegistry",
    "FunctionCallingController",
    "FunctionNotFoundError",
    "FunctionParameter",
    "Generation",
    "InvalidOptionsError",
    "MessageType",
    "MiniMaxApi",
    "MiniMaxApiError",
    "MiniMaxChatClient",
    "MiniMaxChatError",
    "MiniMaxChatOptions",
    "Prompt",
    "PromptMessage",
    "RetryPolicy",
    "StreamErrorPolicy",
    "StreamingFunctionCallNotSupportedError",
    "ToolRoundLimitExceededError",
    "TransientApiError",
    "load_config",
]
