from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from store import DATA_DIR


DEFAULT_WORD_COUNT = 30
MIN_WORD_COUNT = 1
MAX_WORD_COUNT = 50
DEFAULT_MODEL = "mistral-tiny"
DEFAULT_TIMEOUT = 15.0


def _env_flag(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _env_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


@dataclass
class Settings:
    api_base_url: str | None = None
    mistral_api_key: str | None = None
    mistral_model: str = DEFAULT_MODEL
    word_count: int = DEFAULT_WORD_COUNT
    data_dir: Path = DATA_DIR
    request_timeout: float = DEFAULT_TIMEOUT
    suggest_on_finish: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        count = _env_int(env.get("SPELLING_TYPER_WORD_COUNT"), DEFAULT_WORD_COUNT)
        home = env.get("SPELLING_TYPER_HOME")
        return cls(
            api_base_url=(env.get("SPELLING_TYPER_API_URL") or "").rstrip("/") or None,
            mistral_api_key=env.get("MISTRAL_API_KEY") or None,
            mistral_model=env.get("SPELLING_TYPER_MODEL") or DEFAULT_MODEL,
            word_count=max(MIN_WORD_COUNT, min(MAX_WORD_COUNT, count)),
            data_dir=Path(home).expanduser() if home else DATA_DIR,
            suggest_on_finish=_env_flag(env.get("SPELLING_TYPER_SUGGEST"), True),
            log_level=(env.get("SPELLING_TYPER_LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def store_path(self) -> Path:
        return self.data_dir / "errors.json"

    @property
    def log_path(self) -> Path:
        return self.data_dir / "spelling-typer.log"

    def source_kind(self) -> str:
        if self.api_base_url:
            return "proxy"
        if self.mistral_api_key:
            return "mistral"
        return "sample"
