"""MiniMax chat completion wire types.

Dataclass mirrors of the JSON bodies exchanged with
``/v1/text/chatcompletion_v2``.  Request-side types render with
``to_dict()``; response-side types decode with lenient ``from_dict()``.
"""

from __future__ import annotations

import enum
import json
from dataclasses import asdict, dataclass, field, fields
from typing import Any


class ChatModel(str, enum.Enum):
    """Known MiniMax chat models."""

    ABAB_6_5_CHAT = "abab6.5-chat"
    ABAB_6_5_S_CHAT = "abab6.5s-chat"
    ABAB_6_5_G_CHAT = "abab6.5g-chat"
    ABAB_6_CHAT = "abab6-chat"
    ABAB_5_5_CHAT = "abab5.5-chat"
    ABAB_5_5_S_CHAT = "abab5.5s-chat"


DEFAULT_CHAT_MODEL = ChatModel.ABAB_5_5_CHAT.value


class Role(str, enum.Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, enum.Enum):
    """Why generation stopped.  Unrecognised wire values map to ``OTHER``."""

    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    TOOL_CALLS = "tool_calls"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> FinishReason | None:
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class ToolChoice:
    """Values accepted by the ``tool_choice`` request field."""

    NONE = "none"
    AUTO = "auto"

    @staticmethod
    def function(name: str) -> str:
        """Force the model to call *name*."""
        return json.dumps({"type": "function", "function": {"name": name}})


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# ---------------------------------------------------------------------------
# Messages and tool calls
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FunctionCall:
    """Function name plus its raw JSON argument string."""

    name: str
    arguments: str = "{}"


@dataclass(frozen=True)
class ToolCall:
    """A model request to run a client-side function."""

    id: str
    function: FunctionCall
    type: str = "function"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        func = data.get("function") or {}
        arguments = func.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(
            id=data.get("id", ""),
            type=data.get("type", "function"),
            function=FunctionCall(name=func.get("name", ""), arguments=arguments),
        )


@dataclass(frozen=True)
class ChatCompletionMessage:
    """One message of a conversation, immutable once built."""

    content: str | None
    role: Role | None
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "content": self.content,
            "role": self.role.value if self.role else None,
            "name": self.name,
            "tool_call_id": self.tool_call_id,
        }
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return _drop_none(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatCompletionMessage:
        role = data.get("role")
        raw_calls = data.get("tool_calls")
        return cls(
            content=data.get("content"),
            role=Role(role) if role else None,
            name=data.get("name"),
            tool_call_id=data.get("tool_call_id"),
            tool_calls=(
                tuple(ToolCall.from_dict(tc) for tc in raw_calls)
                if raw_calls else None
            ),
        )


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Function:
    """Function description advertised to the model."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FunctionTool:
    function: Function
    type: str = "function"

    def to_dict(self) -> dict[str, Any]:
        # MiniMax expects the JSON schema serialised as a string.
        return {
            "type": self.type,
            "function": {
                "name": self.function.name,
                "description": self.function.description,
                "parameters": json.dumps(self.function.parameters),
            },
        }


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

@dataclass
class ChatCompletionRequest:
    """Outbound chat completion body.  ``None`` fields are not sent."""

    messages: list[ChatCompletionMessage]
    model: str | None = None
    frequency_penalty: float | None = None
    max_tokens: int | None = None
    n: int | None = None
    presence_penalty: float | None = None
    response_format: dict[str, Any] | None = None
    seed: int | None = None
    stop: list[str] | None = None
    stream: bool | None = None
    temperature: float | None = None
    top_p: float | None = None
    tools: list[FunctionTool] | None = None
    tool_choice: str | None = None

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for name in self.field_names():
            value = getattr(self, name)
            if value is None:
                continue
            if name == "messages":
                value = [m.to_dict() for m in value]
            elif name == "tools":
                value = [t.to_dict() for t in value]
            data[name] = value
        return data


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Usage | None:
        if not data:
            return None
        return cls(
            prompt_tokens=data.get("prompt_tokens", 0) or 0,
            completion_tokens=data.get("completion_tokens", 0) or 0,
            total_tokens=data.get("total_tokens", 0) or 0,
        )


@dataclass
class BaseResponse:
    """Vendor status embedded in an otherwise successful HTTP body."""

    status_code: int = 0
    status_msg: str = ""

    @property
    def ok(self) -> bool:
        return self.status_code == 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BaseResponse | None:
        if not data:
            return None
        return cls(
            status_code=data.get("status_code", 0) or 0,
            status_msg=data.get("status_msg", "") or "",
        )


@dataclass
class Choice:
    index: int
    message: ChatCompletionMessage
    finish_reason: FinishReason | None = None
    logprobs: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Choice:
        return cls(
            index=data.get("index", 0),
            message=ChatCompletionMessage.from_dict(data.get("message") or {}),
            finish_reason=FinishReason.parse(data.get("finish_reason")),
            logprobs=data.get("logprobs"),
        )


@dataclass
class ChatCompletion:
    """A complete (non-streamed) chat completion."""

    id: str
    choices: list[Choice] = field(default_factory=list)
    created: int = 0
    model: str = ""
    system_fingerprint: str | None = None
    object: str = "chat.completion"
    base_resp: BaseResponse | None = None
    usage: Usage | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatCompletion:
        return cls(
            id=data.get("id", ""),
            choices=[Choice.from_dict(c) for c in data.get("choices") or []],
            created=data.get("created", 0) or 0,
            model=data.get("model", "") or "",
            system_fingerprint=data.get("system_fingerprint"),
            object=data.get("object", "chat.completion") or "chat.completion",
            base_resp=BaseResponse.from_dict(data.get("base_resp")),
            usage=Usage.from_dict(data.get("usage")),
        )


@dataclass
class ChunkChoice:
    index: int
    delta: ChatCompletionMessage | None
    finish_reason: FinishReason | None = None
    logprobs: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChunkChoice:
        delta = data.get("delta")
        return cls(
            index=data.get("index", 0),
            delta=ChatCompletionMessage.from_dict(delta) if delta else None,
            finish_reason=FinishReason.parse(data.get("finish_reason")),
            logprobs=data.get("logprobs"),
        )


@dataclass
class ChatCompletionChunk:
    """One streamed fragment.  Fragments of one response share ``id``."""

    id: str
    choices: list[ChunkChoice] = field(default_factory=list)
    created: int = 0
    model: str = ""
    system_fingerprint: str | None = None
    object: str = "chat.completion.chunk"
    base_resp: BaseResponse | None = None
    # Set when the fragment could not be decoded
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatCompletionChunk:
        return cls(
            id=data.get("id", ""),
            choices=[ChunkChoice.from_dict(c) for c in data.get("choices") or []],
            created=data.get("created", 0) or 0,
            model=data.get("model", "") or "",
            system_fingerprint=data.get("system_fingerprint"),
            object=data.get("object", "chat.completion.chunk") or "chat.completion.chunk",
            base_resp=BaseResponse.from_dict(data.get("base_resp")),
        )

    @classmethod
    def malformed(cls, data: Any, error: str) -> ChatCompletionChunk:
        chunk_id = data.get("id") if isinstance(data, dict) else None
        return cls(id=chunk_id if isinstance(chunk_id, str) else "", error=error)
