"""
Runtime configuration.

All settings come from environment variables so the CLI works without a
config file:

    GEMINI_API_KEY     Gemini API key (LLM commands only)
    GWACALC_MODEL      model name (default: gemini-2.0-flash)
    GWACALC_DATA       path of courses.json (default: inside the package)
    GWACALC_STRATEGY   preferred duplicate strategy (default: skip_duplicates)
    GWACALC_TIMEOUT    request timeout in seconds (default: 60)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from gwacalc.errors import ConfigError
from gwacalc.model import MergeStrategy

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str]
    model: str
    data_path: Optional[Path]
    strategy: MergeStrategy
    timeout: float

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigError(
                "Missing Gemini API key. Please set GEMINI_API_KEY in your environment."
            )
        return self.api_key


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read settings from `env` (defaults to os.environ).

    Passing a dict makes testing easy without touching the real environment.
    """
    source = os.environ if env is None else env

    api_key = (source.get("GEMINI_API_KEY") or "").strip() or None
    model = (source.get("GWACALC_MODEL") or "").strip() or DEFAULT_MODEL

    data_raw = (source.get("GWACALC_DATA") or "").strip()
    data_path = Path(data_raw).expanduser() if data_raw else None

    strategy_raw = (source.get("GWACALC_STRATEGY") or "").strip().lower()
    try:
        strategy = MergeStrategy(strategy_raw) if strategy_raw else MergeStrategy.SKIP_DUPLICATES
    except ValueError:
        valid = ", ".join(s.value for s in MergeStrategy)
        raise ConfigError(f"Invalid GWACALC_STRATEGY {strategy_raw!r} (expected one of: {valid})") from None

    timeout_raw = (source.get("GWACALC_TIMEOUT") or "").strip()
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
    except ValueError:
        raise ConfigError(f"Invalid GWACALC_TIMEOUT {timeout_raw!r} (expected seconds)") from None
    if timeout <= 0:
        raise ConfigError(f"Invalid GWACALC_TIMEOUT {timeout_raw!r} (must be > 0)")

    return Settings(api_key=api_key, model=model, data_path=data_path, strategy=strategy, timeout=timeout)
