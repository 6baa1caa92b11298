from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigError

DEFAULT_START_URLS = (
  "https://docs.apify.com/sdk/js/docs",
  "https://docs.apify.com/sdk/js/reference",
)
DEFAULT_EMBEDDING_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_EMBEDDING_MODEL = "openai/text-embedding-3-small"
TRANSPORTS = ("stdio", "streamable-http")


def _as_bool(value: str | None) -> bool:
  return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _as_list(value: str | None) -> list[str]:
  return [v.strip() for v in (value or "").split(",") if v.strip()]


@dataclass(frozen=True)
class Settings:
  db_path: str = os.path.join(".docindexer", "docindexer.db")
  start_urls: list[str] = field(default_factory=lambda: list(DEFAULT_START_URLS))
  max_pages: int = 100
  force_refresh: bool = False
  embedding_base_url: str = DEFAULT_EMBEDDING_BASE_URL
  embedding_api_key: str | None = None
  embedding_model: str = DEFAULT_EMBEDDING_MODEL
  transport: str = "stdio"
  log_level: str = "INFO"

  @staticmethod
  def from_env(env: Mapping[str, str] | None = None) -> "Settings":
    env = os.environ if env is None else env
    defaults = Settings()

    raw_pages = env.get("DOCINDEXER_MAX_PAGES")
    try:
      max_pages = int(raw_pages) if raw_pages else defaults.max_pages
    except ValueError:
      raise ConfigError(f"DOCINDEXER_MAX_PAGES must be an integer, got {raw_pages!r}") from None

    return Settings(
      db_path=env.get("DOCINDEXER_DB") or defaults.db_path,
      start_urls=_as_list(env.get("DOCINDEXER_START_URLS")) or defaults.start_urls,
      max_pages=max_pages,
      force_refresh=_as_bool(env.get("DOCINDEXER_FORCE_REFRESH")),
      embedding_base_url=(env.get("DOCINDEXER_EMBEDDING_BASE_URL") or defaults.embedding_base_url).rstrip("/"),
      embedding_api_key=env.get("DOCINDEXER_EMBEDDING_API_KEY") or env.get("OPENROUTER_API_KEY"),
      embedding_model=env.get("DOCINDEXER_EMBEDDING_MODEL") or defaults.embedding_model,
      transport=env.get("DOCINDEXER_TRANSPORT") or defaults.transport,
      log_level=(env.get("DOCINDEXER_LOG_LEVEL") or defaults.log_level).upper(),
    )

  def validate(self) -> None:
    """Raise ConfigError listing every missing or invalid setting."""
    problems: list[str] = []
    if not self.embedding_api_key:
      problems.append("DOCINDEXER_EMBEDDING_API_KEY (or OPENROUTER_API_KEY) is not set")
    if self.transport not in TRANSPORTS:
      problems.append(f"DOCINDEXER_TRANSPORT must be one of {', '.join(TRANSPORTS)}")
    if self.max_pages < 1:
      problems.append("DOCINDEXER_MAX_PAGES must be at least 1")
    if problems:
      raise ConfigError("; ".join(problems))
