"""YouTube API key resolution from an ordered list of sources."""

from __future__ import annotations

import os
import logging
from pathlib import Path
from typing import Callable, Optional

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

Strategy = Callable[[], Optional[str]]


def _valid(key: Optional[str]) -> Optional[str]:
    if key is None:
        return None
    key = key.strip()
    return key or None


def env_strategy(var_name: str = "YOUTUBE_API_KEY") -> Strategy:
    def strategy():
        return _valid(os.environ.get(var_name))

    strategy.__name__ = f"env:{var_name}"
    return strategy


def config_strategy(youtube_config: dict) -> Strategy:
    def strategy():
        return _valid(youtube_config.get("api_key"))

    strategy.__name__ = "config:youtube.api_key"
    return strategy


def file_strategy(path) -> Strategy:
    def strategy():
        p = Path(path).expanduser()
        if not p.is_file():
            return None
        return _valid(p.read_text(encoding="utf-8"))

    strategy.__name__ = f"file:{path}"
    return strategy


class CredentialProvider:
    """Tries each strategy in order and returns the first key found."""

    def __init__(self, strategies: list[Strategy]):
        self.strategies = list(strategies)

    @classmethod
    def default(cls, youtube_config: dict) -> "CredentialProvider":
        return cls([
            env_strategy("YOUTUBE_API_KEY"),
            config_strategy(youtube_config),
            file_strategy("~/.config/bgm_scout/api_key"),
        ])

    def resolve(self) -> str:
        for strategy in self.strategies:
            try:
                key = strategy()
            except OSError as e:
                logger.warning(f"Credential source {strategy.__name__} unreadable: {e}")
                continue
            if key:
                logger.debug(f"Using YouTube API key from {strategy.__name__}")
                return key
        raise ConfigurationError(
            "No YouTube API key found. Set YOUTUBE_API_KEY in .env or youtube.api_key in config.yaml."
        )
