# echoverse/config.py
from __future__ import annotations

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s :: %(message)s"

API_DEFAULT_PORT = 3001
PROXY_DEFAULT_PORT = 3000


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = API_DEFAULT_PORT
    database_path: str = "echoverse.db"
    public_base_url: Optional[str] = None
    max_page_size: int = 100
    log_level: str = "INFO"

    # LLM proxy only
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    llm_timeout_s: float = 30.0
    rate_limit_window_s: int = 15 * 60
    rate_limit_max: int = 100

    @classmethod
    def from_env(cls, default_port: int = API_DEFAULT_PORT) -> "Settings":
        """
        Build settings from the process environment (after .env is loaded).
        Each service passes its own default port.
        """
        load_dotenv()
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_env("PORT", default_port),
            database_path=os.getenv("DATABASE_PATH", "echoverse.db"),
            public_base_url=(os.getenv("PUBLIC_BASE_URL") or None),
            max_page_size=max(1, _int_env("MAX_PAGE_SIZE", 100)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            llm_timeout_s=float(_int_env("LLM_TIMEOUT_S", 30)),
            rate_limit_window_s=_int_env("RATE_LIMIT_WINDOW_S", 15 * 60),
            rate_limit_max=_int_env("RATE_LIMIT_MAX", 100),
        )

    def __repr__(self) -> str:
        # keys stay out of logs and tracebacks
        return (
            f"Settings(host={self.host!r}, port={self.port}, "
            f"database_path={self.database_path!r}, log_level={self.log_level!r}, "
            f"openai_api_key={'set' if self.openai_api_key else None}, "
            f"anthropic_api_key={'set' if self.anthropic_api_key else None})"
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
