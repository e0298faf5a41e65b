from __future__ import annotations

import os
from dataclasses import dataclass


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "").strip()
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

    assistant_id: str = os.getenv("ASSISTANT_ID", "").strip()
    assistant_name: str = os.getenv("ASSISTANT_NAME", "Cliniverse Coach")
    assistant_model: str = os.getenv("ASSISTANT_MODEL", "gpt-4.1-mini")
    rewrite_model: str = os.getenv("REWRITE_MODEL", "gpt-4.1-mini")
    vector_store_id: str = os.getenv("VECTOR_STORE_ID", "").strip()
    vector_store_name: str = os.getenv("VECTOR_STORE_NAME", "cliniverse-kb")

    poll_interval_seconds: float = _float("POLL_INTERVAL_SECONDS", 0.9)
    # 0 disables the deadline.
    run_timeout_seconds: float = _float("RUN_TIMEOUT_SECONDS", 120.0)
    message_window: int = _int("MESSAGE_WINDOW", 10)

    session_ttl_seconds: int = _int("SESSION_TTL_SECONDS", 24 * 60 * 60)
    session_max_entries: int = _int("SESSION_MAX_ENTRIES", 10_000)

    retry_attempts: int = _int("RETRY_ATTEMPTS", 5)
    retry_base_delay_seconds: float = _float("RETRY_BASE_DELAY_SECONDS", 0.6)
    chat_retry_attempts: int = _int("CHAT_RETRY_ATTEMPTS", 1)
    llm_timeout_seconds: int = _int("LLM_TIMEOUT_SECONDS", 25)

    max_body_bytes: int = _int("MAX_BODY_BYTES", 10 * 1024 * 1024)
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")
    audit_log_path: str = os.getenv("AUDIT_LOG_PATH", "./data/audit.log.jsonl")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    port: int = _int("PORT", 8787)

    debug: bool = _bool("DEBUG", False)


SETTINGS = Settings()
