"""Stream chunk normalisation.

Turns each ``ChatCompletionChunk`` into a ``ChatCompletion`` so the
function-calling logic can treat streamed and single-shot responses alike.
"""

from __future__ import annotations

import dataclasses
import logging

from minimax_chat.api import check_base_response
from minimax_chat.errors import MiniMaxApiError
from minimax_chat.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionMessage,
    Choice,
    Role,
)

_logger = logging.getLogger(__name__)


class ChunkNormalizer:
    """Normalises the chunks of one stream.

    Only the first chunk of a response carries the speaker role; later
    chunks with the same id get it filled in from this normaliser's cache.
    Create one instance per stream.
    """

    def __init__(self) -> None:
        self._roles: dict[str, Role] = {}

    def role_for(self, completion_id: str) -> Role | None:
        return self._roles.get(completion_id)

    def normalize(self, chunk: ChatCompletionChunk) -> ChatCompletion:
        """Convert *chunk* into a ``ChatCompletion`` with no usage."""
        if chunk.error is not None:
            raise MiniMaxApiError(f"Malformed stream fragment {chunk.id!r}: {chunk.error}")
        check_base_response(chunk.base_resp)

        choices: list[Choice] = []
        for cc in chunk.choices:
            delta = cc.delta
            if delta is None:
                delta = ChatCompletionMessage(content="", role=Role.ASSISTANT)
            delta = self._with_role(chunk.id, delta)
            choices.append(
                Choice(
                    index=cc.index,
                    message=delta,
                    finish_reason=cc.finish_reason,
                    logprobs=cc.logprobs,
                )
            )

        return ChatCompletion(
            id=chunk.id,
            choices=choices,
            created=chunk.created,
            model=chunk.model,
            system_fingerprint=chunk.system_fingerprint,
            object="chat.completion",
            base_resp=None,
            usage=None,
        )

    def _with_role(self, completion_id: str, message: ChatCompletionMessage) -> ChatCompletionMessage:
        if message.role is not None:
            self._roles.setdefault(completion_id, message.role)
            return message
        role = self._roles.get(completion_id)
        if role is None:
            _logger.debug("Chunk %s arrived before any role was seen", completion_id)
            return message
        return dataclasses.replace(message, role=role)
