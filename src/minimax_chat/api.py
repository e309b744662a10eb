"""Low-level async client for the MiniMax chat completion API.

Wraps ``httpx.AsyncClient`` and maps HTTP outcomes onto the package's
error types:

- 429 / 5xx, timeouts and transport errors -> ``TransientApiError``
- other HTTP errors -> ``MiniMaxApiError``
- HTTP 200 with a non-zero ``base_resp.status_code`` -> ``MiniMaxApiError``

Retrying is left to ``RetryPolicy``.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator

import httpx

from minimax_chat.errors import MiniMaxApiError, TransientApiError
from minimax_chat.types import (
    BaseResponse,
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionRequest,
)

_logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.minimax.chat"
CHAT_COMPLETIONS_PATH = "/v1/text/chatcompletion_v2"

_TRANSIENT_STATUS = (429, 500, 502, 503, 504)

# Raised by the lenient from_dict decoders on shapes they cannot read
_DECODE_ERRORS = (ValueError, TypeError, AttributeError)


def check_base_response(base_resp: BaseResponse | None) -> None:
    """Raise ``MiniMaxApiError`` when the vendor embedded a failure status."""
    if base_resp is not None and not base_resp.ok:
        raise MiniMaxApiError(
            base_resp.status_msg or f"MiniMax error status {base_resp.status_code}",
            status_code=base_resp.status_code,
        )


def _raise_for_status(resp: httpx.Response, body: str = "") -> None:
    if resp.status_code < 400:
        return
    message = f"MiniMax API returned {resp.status_code}"
    if body:
        message = f"{message}: {body[:500]}"
    if resp.status_code in _TRANSIENT_STATUS:
        raise TransientApiError(message, status_code=resp.status_code)
    raise MiniMaxApiError(message, status_code=resp.status_code)


class MiniMaxApi:
    """Async transport for ``/v1/text/chatcompletion_v2``."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("MiniMax API key must not be empty")
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=30, read=300),
        )
        if client is not None:
            self._client.headers.update(headers)

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletion | None:
        """Send a non-streaming request.

        Returns ``None`` when the server answered with an empty body.
        """
        if request.stream:
            raise ValueError("Request must set stream to False")

        payload = request.to_dict()
        _logger.debug("POST %s model=%s messages=%d", CHAT_COMPLETIONS_PATH,
                      payload.get("model"), len(payload["messages"]))
        start = time.monotonic()
        try:
            resp = await self._client.post(CHAT_COMPLETIONS_PATH, json=payload)
        except httpx.TimeoutException as e:
            raise TransientApiError(f"MiniMax API timeout: {e}") from e
        except httpx.TransportError as e:
            raise TransientApiError(f"MiniMax API transport error: {e}") from e

        _raise_for_status(resp, resp.text)
        latency = (time.monotonic() - start) * 1000
        _logger.debug("MiniMax API answered %d in %.0f ms", resp.status_code, latency)

        if not resp.content or not resp.content.strip():
            return None
        try:
            data = resp.json()
        except json.JSONDecodeError as e:
            raise MiniMaxApiError("MiniMax API returned invalid JSON") from e
        if data is None:
            return None
        if not isinstance(data, dict):
            raise MiniMaxApiError("MiniMax API returned a non-object body")

        try:
            completion = ChatCompletion.from_dict(data)
        except _DECODE_ERRORS as e:
            raise MiniMaxApiError(f"MiniMax API returned a malformed completion: {e}") from e
        check_base_response(completion.base_resp)
        return completion

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def chat_completion_stream(
        self, request: ChatCompletionRequest,
    ) -> AsyncIterator[ChatCompletionChunk]:
        """Send a streaming request and yield parsed chunks in order.

        Lines that are not ``data:`` events or are not JSON are skipped.  An
        event that is JSON but not a valid chunk is yielded as a
        ``ChatCompletionChunk`` with ``error`` set, so the consumer decides
        whether one bad fragment ends the stream.
        """
        if not request.stream:
            raise ValueError("Request must set stream to True")

        payload = request.to_dict()
        try:
            async with self._client.stream(
                "POST", CHAT_COMPLETIONS_PATH, json=payload,
            ) as resp:
                if resp.status_code >= 400:
                    body = (await resp.aread()).decode(errors="replace")
                    _raise_for_status(resp, body)

                async for raw_line in resp.aiter_lines():
                    data = _parse_sse_line(raw_line)
                    if data is _DONE:
                        break
                    if data is None:
                        continue
                    yield _decode_chunk(data)
        except httpx.TimeoutException as e:
            raise TransientApiError(f"MiniMax stream timeout: {e}") from e
        except httpx.TransportError as e:
            raise TransientApiError(f"MiniMax stream transport error: {e}") from e

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> MiniMaxApi:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


_DONE = object()


def _parse_sse_line(raw_line: str) -> Any:
    """Decode one SSE line: the JSON payload, ``_DONE``, or ``None`` to skip."""
    if not raw_line.startswith("data:"):
        return None
    data_str = raw_line[5:].strip()
    if not data_str:
        return None
    if data_str == "[DONE]":
        return _DONE
    try:
        data = json.loads(data_str)
    except json.JSONDecodeError:
        _logger.warning("Skipping undecodable stream line: %.200s", data_str)
        return None
    return data


def _decode_chunk(data: Any) -> ChatCompletionChunk:
    try:
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        return ChatCompletionChunk.from_dict(data)
    except _DECODE_ERRORS as e:
        _logger.warning("Malformed stream fragment: %s", e)
        return ChatCompletionChunk.malformed(data, str(e))
