"""Tests for the tool-call round-trip controller."""

from __future__ import annotations

from typing import Any

import pytest

from minimax_chat.errors import (
    FunctionNotFoundError,
    StreamingFunctionCallNotSupportedError,
    ToolRoundLimitExceededError,
)
from minimax_chat.function_calling import FunctionCallingController
from minimax_chat.functions import FunctionCallback, FunctionCallbackRegistry
from minimax_chat.types import (
    ChatCompletion,
    ChatCompletionMessage,
    ChatCompletionRequest,
    Choice,
    FinishReason,
    Function,
    FunctionCall,
    FunctionTool,
    Role,
    ToolCall,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _tool_call(call_id: str, name: str, arguments: str = "{}") -> ToolCall:
    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))


def _completion(
    content: str = "",
    finish: FinishReason | None = FinishReason.STOP,
    tool_calls: list[ToolCall] | None = None,
    completion_id: str = "c1",
) -> ChatCompletion:
    message = ChatCompletionMessage(
        content=content,
        role=Role.ASSISTANT,
        tool_calls=tuple(tool_calls) if tool_calls else None,
    )
    return ChatCompletion(
        id=completion_id,
        choices=[Choice(index=0, message=message, finish_reason=finish)],
    )


class ScriptedTransport:
    """Returns queued completions and records every request."""

    def __init__(self, completions: list[ChatCompletion | None]):
        self._completions = list(completions)
        self.requests: list[ChatCompletionRequest] = []

    async def __call__(self, request: ChatCompletionRequest) -> ChatCompletion | None:
        self.requests.append(request)
        return self._completions.pop(0)


class RecordingFunction:
    def __init__(self, name: str, result: str = "done"):
        self.name = name
        self.result = result
        self.calls: list[str] = []

    def __call__(self, arguments: str) -> str:
        self.calls.append(arguments)
        return f"{self.result}:{arguments}"

    def callback(self) -> FunctionCallback:
        return FunctionCallback(name=self.name, description=self.name, handler=self)


def _request(**kwargs: Any) -> ChatCompletionRequest:
    return ChatCompletionRequest(
        messages=[ChatCompletionMessage(content="What's the weather?", role=Role.USER)],
        **kwargs,
    )


# ---------------------------------------------------------------------------
# is_tool_call
# ---------------------------------------------------------------------------

class TestIsToolCall:
    def test_tool_calls_finish_with_calls(self):
        completion = _completion(
            finish=FinishReason.TOOL_CALLS, tool_calls=[_tool_call("1", "f")],
        )
        assert FunctionCallingController.is_tool_call(completion)

    @pytest.mark.parametrize(
        "finish",
        [FinishReason.STOP, FinishReason.LENGTH, FinishReason.CONTENT_FILTER,
         FinishReason.OTHER, None],
    )
    def test_other_finish_reasons_are_terminal(self, finish):
        completion = _completion(finish=finish, tool_calls=[_tool_call("1", "f")])
        assert not FunctionCallingController.is_tool_call(completion)

    def test_tool_calls_finish_without_calls(self):
        assert not FunctionCallingController.is_tool_call(
            _completion(finish=FinishReason.TOOL_CALLS)
        )

    def test_none_and_empty(self):
        assert not FunctionCallingController.is_tool_call(None)
        assert not FunctionCallingController.is_tool_call(ChatCompletion(id="x"))

    def test_only_first_choice_is_inspected(self):
        completion = _completion(finish=FinishReason.STOP)
        second = _completion(
            finish=FinishReason.TOOL_CALLS, tool_calls=[_tool_call("1", "f")],
        ).choices[0]
        completion.choices.append(second)
        assert not FunctionCallingController.is_tool_call(completion)


# ---------------------------------------------------------------------------
# create_tool_response_request
# ---------------------------------------------------------------------------

class TestCreateToolResponseRequest:
    @pytest.mark.asyncio
    async def test_one_tool_message_per_call_in_order(self):
        weather = RecordingFunction("get_weather")
        time_fn = RecordingFunction("get_time")
        registry = FunctionCallbackRegistry([weather.callback(), time_fn.callback()])
        controller = FunctionCallingController(registry, ScriptedTransport([]))

        calls = [
            _tool_call("call_1", "get_weather", '{"city": "SF"}'),
            _tool_call("call_2", "get_time", '{"tz": "PST"}'),
            _tool_call("call_3", "get_weather", '{"city": "NY"}'),
        ]
        assistant = ChatCompletionMessage(content="", role=Role.ASSISTANT, tool_calls=tuple(calls))
        prior = _request(model="abab6.5-chat", temperature=0.3, stream=False)
        history = [*prior.messages, assistant]

        followup = await controller.create_tool_response_request(prior, assistant, history)

        tool_messages = followup.messages[2:]
        assert len(tool_messages) == 3
        assert [m.tool_call_id for m in tool_messages] == ["call_1", "call_2", "call_3"]
        assert [m.name for m in tool_messages] == ["get_weather", "get_time", "get_weather"]
        assert all(m.role is Role.TOOL for m in tool_messages)
        assert tool_messages[0].content == 'done:{"city": "SF"}'
        assert weather.calls == ['{"city": "SF"}', '{"city": "NY"}']

    @pytest.mark.asyncio
    async def test_followup_inherits_prior_settings(self):
        fn = RecordingFunction("f")
        controller = FunctionCallingController(
            FunctionCallbackRegistry([fn.callback()]), ScriptedTransport([]),
        )
        tool = FunctionTool(Function(name="f", description="f"))
        prior = _request(model="m", temperature=0.1, top_p=0.5, max_tokens=99,
                         seed=3, tools=[tool], tool_choice="auto", stream=True)
        assistant = ChatCompletionMessage(
            content="", role=Role.ASSISTANT, tool_calls=(_tool_call("1", "f"),),
        )
        followup = await controller.create_tool_response_request(
            prior, assistant, [*prior.messages, assistant],
        )
        assert followup.stream is False
        assert (followup.model, followup.temperature, followup.top_p) == ("m", 0.1, 0.5)
        assert (followup.max_tokens, followup.seed) == (99, 3)
        assert followup.tools == [tool]
        assert followup.tool_choice == "auto"
        assert len(followup.messages) == 3

    @pytest.mark.asyncio
    async def test_unknown_function_raises_before_later_calls(self):
        later = RecordingFunction("later")
        controller = FunctionCallingController(
            FunctionCallbackRegistry([later.callback()]), ScriptedTransport([]),
        )
        assistant = ChatCompletionMessage(
            content="",
            role=Role.ASSISTANT,
            tool_calls=(_tool_call("1", "missing"), _tool_call("2", "later")),
        )
        with pytest.raises(FunctionNotFoundError):
            await controller.create_tool_response_request(_request(), assistant, [])
        assert later.calls == []


# ---------------------------------------------------------------------------
# drive
# ---------------------------------------------------------------------------

class TestDrive:
    @pytest.mark.asyncio
    async def test_terminal_response_single_call(self):
        transport = ScriptedTransport([_completion("Hello")])
        controller = FunctionCallingController(FunctionCallbackRegistry(), transport)
        result = await controller.drive(_request())
        assert result.choices[0].message.content == "Hello"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_two_tool_rounds_then_stop(self):
        fn = RecordingFunction("get_weather", result="30C")
        transport = ScriptedTransport([
            _completion(finish=FinishReason.TOOL_CALLS,
                        tool_calls=[_tool_call("a", "get_weather", '{"city": "SF"}')]),
            _completion(finish=FinishReason.TOOL_CALLS,
                        tool_calls=[_tool_call("b", "get_weather", '{"city": "LA"}')]),
            _completion("It is 30C in SF and LA."),
        ])
        controller = FunctionCallingController(
            FunctionCallbackRegistry([fn.callback()]), transport,
        )

        result = await controller.drive(_request(model="m", stream=False))

        assert len(transport.requests) == 3
        assert result.choices[0].message.content == "It is 30C in SF and LA."
        # user, assistant(a), tool(a), assistant(b), tool(b)
        final_messages = transport.requests[2].messages
        assert [m.role for m in final_messages] == [
            Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT, Role.TOOL,
        ]
        assert final_messages[4].tool_call_id == "b"
        assert all(r.model == "m" for r in transport.requests)
        assert fn.calls == ['{"city": "SF"}', '{"city": "LA"}']

    @pytest.mark.asyncio
    async def test_prior_request_history_is_not_mutated(self):
        fn = RecordingFunction("f")
        transport = ScriptedTransport([
            _completion(finish=FinishReason.TOOL_CALLS, tool_calls=[_tool_call("a", "f")]),
            _completion("ok"),
        ])
        controller = FunctionCallingController(
            FunctionCallbackRegistry([fn.callback()]), transport,
        )
        request = _request()
        await controller.drive(request)
        assert len(request.messages) == 1

    @pytest.mark.asyncio
    async def test_round_limit_exceeded(self):
        fn = RecordingFunction("f")
        looping = [
            _completion(finish=FinishReason.TOOL_CALLS, tool_calls=[_tool_call(str(i), "f")])
            for i in range(5)
        ]
        transport = ScriptedTransport(looping)
        controller = FunctionCallingController(
            FunctionCallbackRegistry([fn.callback()]), transport, max_rounds=2,
        )
        with pytest.raises(ToolRoundLimitExceededError) as exc:
            await controller.drive(_request())
        assert exc.value.max_rounds == 2
        assert len(transport.requests) == 3
        assert len(fn.calls) == 2

    @pytest.mark.asyncio
    async def test_unbounded_when_max_rounds_none(self):
        fn = RecordingFunction("f")
        script = [
            _completion(finish=FinishReason.TOOL_CALLS, tool_calls=[_tool_call(str(i), "f")])
            for i in range(15)
        ] + [_completion("finally")]
        controller = FunctionCallingController(
            FunctionCallbackRegistry([fn.callback()]), ScriptedTransport(script), max_rounds=None,
        )
        result = await controller.drive(_request())
        assert result.choices[0].message.content == "finally"
        assert len(fn.calls) == 15

    @pytest.mark.asyncio
    async def test_none_completion_is_returned(self):
        controller = FunctionCallingController(
            FunctionCallbackRegistry(), ScriptedTransport([None]),
        )
        assert await controller.drive(_request()) is None

    def test_negative_max_rounds_rejected(self):
        with pytest.raises(ValueError):
            FunctionCallingController(FunctionCallbackRegistry(), ScriptedTransport([]), max_rounds=-1)


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

class TestStreamCompletion:
    def test_terminal_fragment_passes_through(self):
        controller = FunctionCallingController(FunctionCallbackRegistry(), ScriptedTransport([]))
        completion = _completion("partial", finish=None)
        assert controller.handle_stream_completion(completion) is completion

    def test_tool_call_fragment_fails_fast(self):
        fn = RecordingFunction("f")
        transport = ScriptedTransport([])
        controller = FunctionCallingController(
            FunctionCallbackRegistry([fn.callback()]), transport,
        )
        completion = _completion(finish=FinishReason.TOOL_CALLS, tool_calls=[_tool_call("1", "f")])
        with pytest.raises(StreamingFunctionCallNotSupportedError) as exc:
            controller.handle_stream_completion(completion)
        assert str(exc.value) == "Streaming Function calling is not supported"
        assert fn.calls == []
        assert transport.requests == []
