"""Runtime configuration for choosing and opening a storage backend.

`jsonl_path` is only used when `backend == "jsonl"`.
"""

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kindkey.backend.base import Backend
from kindkey.backend.jsonl import JsonlBackend
from kindkey.backend.memory import MemoryBackend
from kindkey.datastore import Datastore


class Config(BaseSettings):
    """Settings loaded from constructor kwargs and `KINDKEY_*` environment variables."""

    model_config = SettingsConfigDict(env_prefix="KINDKEY_")

    backend: Literal["memory", "jsonl"] = "memory"
    jsonl_path: Path = Path("~/.kindkey/entities.jsonl")

    @field_validator("jsonl_path")
    @classmethod
    def _normalize_jsonl_path(cls, value: Path) -> Path:
        """Normalize to an absolute path."""

        return value.expanduser().resolve()


def open_backend(config: Config | None = None) -> Backend:
    """Build the backend selected by `config` (defaults read from the environment)."""

    config = config or Config()
    if config.backend == "jsonl":
        return JsonlBackend(config.jsonl_path)
    return MemoryBackend()


def open_datastore(config: Config | None = None) -> Datastore:
    return Datastore(open_backend(config))
