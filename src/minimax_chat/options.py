"""MiniMax chat options and the layered merge into a request."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from minimax_chat.errors import InvalidOptionsError
from minimax_chat.functions import FunctionCallback
from minimax_chat.prompt import ChatOptions
from minimax_chat.types import ChatCompletionRequest, FunctionTool

# Request fields an options object may carry.  ``messages`` and ``stream``
# belong to the call itself and never come from options.
_MERGEABLE_FIELDS = tuple(
    name for name in ChatCompletionRequest.field_names()
    if name not in ("messages", "stream")
)


@dataclass
class MiniMaxChatOptions(ChatOptions):
    """Options for MiniMax chat completions.

    Every request field defaults to ``None`` meaning "not set here", so a
    lower-precedence layer may supply it.

    ``function_callbacks`` registers callbacks with the client.  On per-call
    options they are also enabled for that call; on default options they
    are only registered.  ``functions`` enables registered callbacks by name.
    """

    frequency_penalty: float | None = None
    max_tokens: int | None = None
    n: int | None = None
    presence_penalty: float | None = None
    response_format: dict[str, Any] | None = None
    seed: int | None = None
    stop: list[str] | None = None
    tools: list[FunctionTool] | None = None
    tool_choice: str | None = None
    function_callbacks: list[FunctionCallback] = field(default_factory=list)
    functions: set[str] = field(default_factory=set)

    @classmethod
    def builder(cls) -> MiniMaxChatOptionsBuilder:
        return MiniMaxChatOptionsBuilder()

    @classmethod
    def from_options(cls, options: Any) -> MiniMaxChatOptions:
        """Copy any ``ChatOptions`` into a fresh ``MiniMaxChatOptions``.

        Raises ``InvalidOptionsError`` for anything else.
        """
        if not isinstance(options, ChatOptions):
            raise InvalidOptionsError(options)
        if isinstance(options, MiniMaxChatOptions):
            return dataclasses.replace(
                options,
                function_callbacks=list(options.function_callbacks),
                functions=set(options.functions),
            )
        own = {f.name for f in dataclasses.fields(cls)}
        values = {
            f.name: getattr(options, f.name)
            for f in dataclasses.fields(options)
            if f.name in own
        }
        return cls(**values)

    def enabled_functions(self, runtime: bool) -> list[str]:
        """Function names these options switch on.

        Per-call (*runtime*) options enable their own callbacks implicitly.
        """
        names: list[str] = []
        if runtime:
            names.extend(cb.name for cb in self.function_callbacks)
        names.extend(sorted(self.functions))
        return list(dict.fromkeys(names))


class MiniMaxChatOptionsBuilder:
    """Fluent builder for ``MiniMaxChatOptions``."""

    def __init__(self, options: MiniMaxChatOptions | None = None) -> None:
        self._options = options or MiniMaxChatOptions()

    def _set(self, name: str, value: Any) -> MiniMaxChatOptionsBuilder:
        setattr(self._options, name, value)
        return self

    def with_model(self, model: str) -> MiniMaxChatOptionsBuilder:
        return self._set("model", model)

    def with_temperature(self, temperature: float) -> MiniMaxChatOptionsBuilder:
        return self._set("temperature", temperature)

    def with_top_p(self, top_p: float) -> MiniMaxChatOptionsBuilder:
        return self._set("top_p", top_p)

    def with_frequency_penalty(self, value: float) -> MiniMaxChatOptionsBuilder:
        return self._set("frequency_penalty", value)

    def with_presence_penalty(self, value: float) -> MiniMaxChatOptionsBuilder:
        return self._set("presence_penalty", value)

    def with_max_tokens(self, max_tokens: int) -> MiniMaxChatOptionsBuilder:
        return self._set("max_tokens", max_tokens)

    def with_n(self, n: int) -> MiniMaxChatOptionsBuilder:
        return self._set("n", n)

    def with_response_format(self, response_format: dict[str, Any]) -> MiniMaxChatOptionsBuilder:
        return self._set("response_format", response_format)

    def with_seed(self, seed: int) -> MiniMaxChatOptionsBuilder:
        return self._set("seed", seed)

    def with_stop(self, stop: list[str]) -> MiniMaxChatOptionsBuilder:
        return self._set("stop", list(stop))

    def with_tools(self, tools: list[FunctionTool]) -> MiniMaxChatOptionsBuilder:
        return self._set("tools", list(tools))

    def with_tool_choice(self, tool_choice: str) -> MiniMaxChatOptionsBuilder:
        return self._set("tool_choice", tool_choice)

    def with_function_callbacks(self, callbacks: list[FunctionCallback]) -> MiniMaxChatOptionsBuilder:
        return self._set("function_callbacks", list(callbacks))

    def with_functions(self, names: set[str] | list[str]) -> MiniMaxChatOptionsBuilder:
        return self._set("functions", set(names))

    def with_function(self, name: str) -> MiniMaxChatOptionsBuilder:
        self._options.functions.add(name)
        return self

    def build(self) -> MiniMaxChatOptions:
        return self._options


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def merge_into_request(source: Any, target: ChatCompletionRequest) -> ChatCompletionRequest:
    """Return a copy of *target* with every set request field of *source*.

    *source* may be an options object or another request; attributes it
    lacks or leaves at ``None`` keep *target*'s value.  The message list
    and stream flag always stay *target*'s.
    """
    overrides: dict[str, Any] = {}
    for name in _MERGEABLE_FIELDS:
        value = getattr(source, name, None)
        if value is not None:
            overrides[name] = value
    return dataclasses.replace(target, **overrides)


def merge_request(
    request: ChatCompletionRequest,
    runtime_options: MiniMaxChatOptions | None,
    default_options: MiniMaxChatOptions | None,
    tools: list[FunctionTool] | None = None,
) -> ChatCompletionRequest:
    """Layer options onto a bare request, highest precedence first.

    1. *runtime_options* override the bare request;
    2. *default_options* fill whatever is still unset;
    3. *tools*, when non-empty, replace the tool list.
    """
    if runtime_options is not None:
        request = merge_into_request(runtime_options, request)
    if default_options is not None:
        request = merge_into_request(request, merge_into_request(default_options, request))
    if tools:
        request = dataclasses.replace(request, tools=list(tools))
    return request
