"""Tool-call round-trip controller.

    request -> completion -> (tool calls? run them, append results) -> request ...

A completion is terminal unless its first choice finished with
``tool_calls`` *and* carries at least one tool call.  Tool calls run one
at a time in list order; each produces exactly one ``tool`` message.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Awaitable, Callable

from minimax_chat.errors import (
    StreamingFunctionCallNotSupportedError,
    ToolRoundLimitExceededError,
)
from minimax_chat.functions import FunctionCallbackRegistry
from minimax_chat.types import (
    ChatCompletion,
    ChatCompletionMessage,
    ChatCompletionRequest,
    FinishReason,
    Role,
)

_logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 10

ChatCompletionFn = Callable[[ChatCompletionRequest], Awaitable["ChatCompletion | None"]]


class FunctionCallingController:
    """Drives a conversation until the model stops asking for tools.

    Parameters
    ----------
    registry:
        Callbacks available to this call.
    chat_completion:
        The transport call, e.g. ``MiniMaxApi.chat_completion``.
    max_rounds:
        Maximum number of follow-up requests.  ``None`` removes the bound.
    """

    def __init__(
        self,
        registry: FunctionCallbackRegistry,
        chat_completion: ChatCompletionFn,
        max_rounds: int | None = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        if max_rounds is not None and max_rounds < 0:
            raise ValueError("max_rounds must be >= 0 or None")
        self._registry = registry
        self._chat_completion = chat_completion
        self._max_rounds = max_rounds

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @staticmethod
    def is_tool_call(completion: ChatCompletion | None) -> bool:
        """True iff the first choice requests tool calls.

        Other choices are never inspected.
        """
        if completion is None or not completion.choices:
            return False
        choice = completion.choices[0]
        return (
            choice.message is not None
            and choice.message.has_tool_calls
            and choice.finish_reason is FinishReason.TOOL_CALLS
        )

    @staticmethod
    def get_tool_response_message(completion: ChatCompletion) -> ChatCompletionMessage:
        """The assistant message holding the tool calls."""
        return completion.choices[0].message

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def create_tool_response_request(
        self,
        prior_request: ChatCompletionRequest,
        assistant_message: ChatCompletionMessage,
        history: list[ChatCompletionMessage],
    ) -> ChatCompletionRequest:
        """Run every tool call and build the follow-up request.

        Appends one ``tool`` message per call to *history*.  The follow-up
        keeps all of *prior_request*'s settings except the messages, and is
        never streamed.  An unknown function raises
        ``FunctionNotFoundError`` before any later call runs.
        """
        for tool_call in assistant_message.tool_calls or ():
            function_name = tool_call.function.name
            callback = self._registry.get(function_name)
            _logger.info("Calling function %s (tool call %s)", function_name, tool_call.id)
            result = await callback.acall(tool_call.function.arguments)
            history.append(
                ChatCompletionMessage(
                    content=result,
                    role=Role.TOOL,
                    name=function_name,
                    tool_call_id=tool_call.id,
                )
            )

        return dataclasses.replace(prior_request, messages=history, stream=False)

    async def handle_function_call_or_return(
        self,
        request: ChatCompletionRequest,
        completion: ChatCompletion | None,
    ) -> ChatCompletionRequest | None:
        """Return the follow-up request, or ``None`` if *completion* is final."""
        if not self.is_tool_call(completion):
            return None
        # The follow-up needs the whole conversation, initial user turn included.
        history = list(request.messages)
        response_message = self.get_tool_response_message(completion)
        history.append(response_message)
        return await self.create_tool_response_request(request, response_message, history)

    async def drive(self, request: ChatCompletionRequest) -> ChatCompletion | None:
        """Issue *request* and follow tool calls until a terminal completion.

        Raises ``ToolRoundLimitExceededError`` if the model still asks for
        tools after ``max_rounds`` follow-ups.
        """
        rounds = 0
        completion = await self._chat_completion(request)
        while self.is_tool_call(completion):
            if self._max_rounds is not None and rounds >= self._max_rounds:
                raise ToolRoundLimitExceededError(self._max_rounds)
            request = await self.handle_function_call_or_return(request, completion)
            rounds += 1
            _logger.debug("Tool round-trip %d: %d messages", rounds, len(request.messages))
            completion = await self._chat_completion(request)
        return completion

    def handle_stream_completion(self, completion: ChatCompletion) -> ChatCompletion:
        """Pass a normalised stream fragment through, or fail on tool calls.

        No function is executed for a streamed tool call.
        """
        if self.is_tool_call(completion):
            raise StreamingFunctionCallNotSupportedError()
        return completion
