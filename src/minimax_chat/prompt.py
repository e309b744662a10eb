"""Vendor-neutral prompt and response types.

Callers build a ``Prompt`` and get back a ``ChatResponse``; nothing here
knows about the MiniMax wire format.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class MessageType(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(frozen=True)
class PromptMessage:
    """A single conversation turn."""

    content: str
    message_type: MessageType = MessageType.USER
    name: str | None = None
    tool_call_id: str | None = None

    @classmethod
    def user(cls, content: str) -> PromptMessage:
        return cls(content, MessageType.USER)

    @classmethod
    def system(cls, content: str) -> PromptMessage:
        return cls(content, MessageType.SYSTEM)

    @classmethod
    def assistant(cls, content: str) -> PromptMessage:
        return cls(content, MessageType.ASSISTANT)


@dataclass
class ChatOptions:
    """Portable options understood by any chat backend."""

    model: str | None = None
    temperature: float | None = None
    top_p: float | None = None


@dataclass
class Prompt:
    """Ordered messages plus optional per-call options.

    A plain string is accepted and becomes a single user message.
    """

    messages: list[PromptMessage]
    options: Any = None

    def __init__(self, messages: str | list[PromptMessage], options: Any = None) -> None:
        if isinstance(messages, str):
            messages = [PromptMessage.user(messages)]
        self.messages = list(messages)
        self.options = options


@dataclass
class Generation:
    """One candidate answer."""

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    finish_reason: str | None = None


@dataclass
class ChatResponse:
    """Result of ``call()`` or one item of ``stream()``."""

    generations: list[Generation] = field(default_factory=list)
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def result(self) -> Generation | None:
        return self.generations[0] if self.generations else None
