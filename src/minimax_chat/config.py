"""Configuration for minimax-chat.

Config discovery (first match wins):
  1. ``--config`` flag
  2. ``./minimax_chat.yaml``
  3. ``~/.config/minimax-chat/config.yaml``
  4. Built-in defaults

``MINIMAX_API_KEY`` in the environment overrides the file's ``api_key``.
"""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from minimax_chat.api import DEFAULT_BASE_URL
from minimax_chat.types import DEFAULT_CHAT_MODEL

_logger = logging.getLogger(__name__)

API_KEY_ENV = "MINIMAX_API_KEY"


class StreamErrorPolicy(str, enum.Enum):
    """What ``stream()`` does when one fragment fails to process."""

    CONTINUE = "continue"  # log it, yield an empty response, keep going
    ABORT = "abort"  # re-raise and end the stream


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass
class OptionsSpec:
    """Default chat options.  ``None`` leaves a field unset."""

    model: str = DEFAULT_CHAT_MODEL
    temperature: float | None = 0.7
    top_p: float | None = None
    max_tokens: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    seed: int | None = None
    stop: list[str] | None = None
    tool_choice: str | None = None
    functions: list[str] = field(default_factory=list)


@dataclass
class RetrySpec:
    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_factor: float = 2.0
    max_backoff: float = 30.0


@dataclass
class ClientConfig:
    """Top-level config for the MiniMax chat client."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 120

    options: OptionsSpec = field(default_factory=OptionsSpec)
    retry: RetrySpec = field(default_factory=RetrySpec)

    # Function calling; None means unbounded
    max_tool_rounds: int | None = 10
    stream_error_policy: StreamErrorPolicy = StreamErrorPolicy.CONTINUE


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./minimax_chat.yaml"),
    Path.home() / ".config" / "minimax-chat" / "config.yaml",
]


def _parse_section(cls: type, raw: dict[str, Any] | None) -> Any:
    """Build dataclass *cls* from *raw*, ignoring unknown keys."""
    if not raw:
        return cls()
    known = cls.__dataclass_fields__
    unknown = sorted(set(raw) - set(known))
    if unknown:
        _logger.warning("Ignoring unknown %s keys: %s", cls.__name__, ", ".join(unknown))
    return cls(**{k: v for k, v in raw.items() if k in known})


def _apply_env(config: ClientConfig) -> ClientConfig:
    env_key = os.environ.get(API_KEY_ENV)
    if env_key:
        config.api_key = env_key
    return config


def load_config(path: str | Path | None = None) -> ClientConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    ClientConfig
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s, using defaults", path)
            return _apply_env(ClientConfig())
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return _apply_env(ClientConfig())

    _logger.info("Loading config from %s", config_path)
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    max_tool_rounds = raw.get("max_tool_rounds", 10)
    try:
        policy = StreamErrorPolicy(raw.get("stream_error_policy", "continue"))
    except ValueError as e:
        raise ValueError(
            f"Invalid stream_error_policy in {config_path}: {raw.get('stream_error_policy')!r}"
        ) from e

    config = ClientConfig(
        api_key=raw.get("api_key", "") or "",
        base_url=raw.get("base_url", DEFAULT_BASE_URL),
        timeout=raw.get("timeout", 120),
        options=_parse_section(OptionsSpec, raw.get("options")),
        retry=_parse_section(RetrySpec, raw.get("retry")),
        max_tool_rounds=max_tool_rounds,
        stream_error_policy=policy,
    )
    return _apply_env(config)
