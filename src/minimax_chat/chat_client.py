"""Vendor-neutral chat client backed by the MiniMax API.

    Prompt -> create_request -> retry(drive) -> ChatResponse
    Prompt -> create_request -> stream -> normalise -> ChatResponse ...

Usage::

    async with MiniMaxApi(api_key) as api:
        client = MiniMaxChatClient(api)
        response = await client.call(Prompt("Hello"))
        print(response.result.content)
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

from minimax_chat.api import MiniMaxApi
from minimax_chat.config import ClientConfig, StreamErrorPolicy
from minimax_chat.errors import StreamingFunctionCallNotSupportedError
from minimax_chat.function_calling import DEFAULT_MAX_TOOL_ROUNDS, FunctionCallingController
from minimax_chat.functions import FunctionCallbackRegistry
from minimax_chat.options import MiniMaxChatOptions, merge_request
from minimax_chat.prompt import ChatResponse, Generation, MessageType, Prompt
from minimax_chat.retry import RetryPolicy
from minimax_chat.stream import ChunkNormalizer
from minimax_chat.types import (
    DEFAULT_CHAT_MODEL,
    ChatCompletion,
    ChatCompletionMessage,
    ChatCompletionRequest,
    Role,
)

_logger = logging.getLogger(__name__)

_ROLE_FOR_TYPE = {
    MessageType.SYSTEM: Role.SYSTEM,
    MessageType.USER: Role.USER,
    MessageType.ASSISTANT: Role.ASSISTANT,
    MessageType.TOOL: Role.TOOL,
}


def _default_options() -> MiniMaxChatOptions:
    return MiniMaxChatOptions(model=DEFAULT_CHAT_MODEL, temperature=0.7)


class MiniMaxChatClient:
    """Chat client with function calling for the MiniMax API.

    Parameters
    ----------
    api:
        Transport used for every exchange.
    default_options:
        Options applied to every request beneath per-call options.  Their
        ``function_callbacks`` are registered (not enabled) at construction.
    registry:
        Shared function callback registry.  A fresh one is created if omitted.
    retry_policy:
        Retry wrapper around each whole ``call()`` exchange.
    max_tool_rounds:
        Maximum follow-up requests per ``call()``; ``None`` for unbounded.
    stream_error_policy:
        Whether a failing stream fragment is skipped or ends the stream.
    """

    def __init__(
        self,
        api: MiniMaxApi,
        default_options: MiniMaxChatOptions | None = None,
        registry: FunctionCallbackRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        max_tool_rounds: int | None = DEFAULT_MAX_TOOL_ROUNDS,
        stream_error_policy: StreamErrorPolicy = StreamErrorPolicy.CONTINUE,
    ) -> None:
        self._api = api
        self._default_options = default_options if default_options is not None else _default_options()
        self._registry = registry if registry is not None else FunctionCallbackRegistry()
        self._retry_policy = retry_policy or RetryPolicy()
        self._max_tool_rounds = max_tool_rounds
        self._stream_error_policy = StreamErrorPolicy(stream_error_policy)

        for callback in self._default_options.function_callbacks:
            self._registry.register_if_absent(callback)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        registry: FunctionCallbackRegistry | None = None,
    ) -> MiniMaxChatClient:
        """Build a client (and its transport) from a ``ClientConfig``."""
        api = MiniMaxApi(config.api_key, base_url=config.base_url, timeout=config.timeout)
        defaults = config.options
        options = MiniMaxChatOptions(
            model=defaults.model,
            temperature=defaults.temperature,
            top_p=defaults.top_p,
            max_tokens=defaults.max_tokens,
            frequency_penalty=defaults.frequency_penalty,
            presence_penalty=defaults.presence_penalty,
            seed=defaults.seed,
            stop=defaults.stop,
            tool_choice=defaults.tool_choice,
            functions=set(defaults.functions),
        )
        retry = RetryPolicy(
            max_attempts=config.retry.max_attempts,
            backoff_base=config.retry.backoff_base,
            backoff_factor=config.retry.backoff_factor,
            max_backoff=config.retry.max_backoff,
        )
        return cls(
            api,
            default_options=options,
            registry=registry,
            retry_policy=retry,
            max_tool_rounds=config.max_tool_rounds,
            stream_error_policy=config.stream_error_policy,
        )

    @property
    def default_options(self) -> MiniMaxChatOptions:
        return self._default_options

    @property
    def registry(self) -> FunctionCallbackRegistry:
        return self._registry

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._api.close()

    # ------------------------------------------------------------------
    # Request construction
    # ------------------------------------------------------------------

    def create_request(self, prompt: Prompt, stream: bool) -> ChatCompletionRequest:
        """Build the outbound request for *prompt*."""
        request, _ = self._prepare(prompt, stream)
        return request

    def _prepare(
        self, prompt: Prompt, stream: bool,
    ) -> tuple[ChatCompletionRequest, FunctionCallbackRegistry]:
        messages = [
            ChatCompletionMessage(
                content=m.content,
                role=_ROLE_FOR_TYPE[MessageType(m.message_type)],
                name=m.name,
                tool_call_id=m.tool_call_id,
            )
            for m in prompt.messages
        ]
        request = ChatCompletionRequest(messages=messages, stream=stream)

        runtime_options: MiniMaxChatOptions | None = None
        registry = self._registry
        enabled: list[str] = []
        if prompt.options is not None:
            runtime_options = MiniMaxChatOptions.from_options(prompt.options)
            registry = self._registry.scoped(runtime_options.function_callbacks)
            enabled.extend(runtime_options.enabled_functions(runtime=True))

        enabled.extend(self._default_options.enabled_functions(runtime=False))
        tools = registry.tool_definitions(enabled) if enabled else None

        request = merge_request(request, runtime_options, self._default_options, tools)
        return request, registry

    # ------------------------------------------------------------------
    # Single-shot
    # ------------------------------------------------------------------

    async def call(self, prompt: Prompt) -> ChatResponse:
        """Send *prompt* and return the final answer, resolving tool calls."""
        request, registry = self._prepare(prompt, stream=False)
        controller = FunctionCallingController(
            registry, self._api.chat_completion, self._max_tool_rounds,
        )

        completion = await self._retry_policy.execute(lambda: controller.drive(request))
        if completion is None:
            _logger.warning("No chat completion returned for prompt: %s", prompt)
            return ChatResponse()

        return _to_chat_response(completion)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(self, prompt: Prompt) -> AsyncIterator[ChatResponse]:
        """Stream *prompt*, yielding one ``ChatResponse`` per fragment.

        Stop iterating to cancel.  A fragment requesting a tool call raises
        ``StreamingFunctionCallNotSupportedError``.
        """
        request, registry = self._prepare(prompt, stream=True)
        controller = FunctionCallingController(
            registry, self._api.chat_completion, self._max_tool_rounds,
        )
        normalizer = ChunkNormalizer()

        chunks = self._retry_policy.stream(lambda: self._api.chat_completion_stream(request))
        async for chunk in chunks:
            try:
                completion = controller.handle_stream_completion(normalizer.normalize(chunk))
                response = _to_chat_response(completion)
            except StreamingFunctionCallNotSupportedError:
                raise
            except Exception:
                if self._stream_error_policy is StreamErrorPolicy.ABORT:
                    raise
                _logger.exception("Error processing chat completion chunk %s", chunk.id)
                response = ChatResponse()
            yield response


def _to_chat_response(completion: ChatCompletion) -> ChatResponse:
    generations: list[Generation] = []
    for choice in completion.choices:
        message = choice.message
        finish = choice.finish_reason.value if choice.finish_reason else None
        metadata: dict[str, Any] = {
            "id": completion.id,
            "role": message.role.value if message.role else None,
            "finish_reason": finish or "",
        }
        generations.append(
            Generation(content=message.content or "", metadata=metadata, finish_reason=finish)
        )
    usage = completion.usage.to_dict() if completion.usage else {}
    return ChatResponse(generations=generations, usage=usage)
