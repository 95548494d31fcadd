from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Safari/605.1.15"
)


@dataclass(frozen=True)
class Settings:
    app_env: str
    db_path: str
    fetch_timeout: float
    fetch_user_agent: str
    llm_provider: str
    summary_model: str
    tts_settle_delay_ms: int

    @staticmethod
    def from_env() -> "Settings":
        def _f(name: str, default: str) -> float:
            return float(os.getenv(name, default).strip())

        def _i(name: str, default: str) -> int:
            return int(os.getenv(name, default).strip())

        return Settings(
            app_env=os.getenv("APP_ENV", "dev").strip(),
            db_path=os.getenv("DB_PATH", "/app/_local/data/speedreader.db").strip(),
            fetch_timeout=_f("FETCH_TIMEOUT", "30"),
            fetch_user_agent=os.getenv("FETCH_USER_AGENT", DEFAULT_USER_AGENT).strip(),
            llm_provider=os.getenv("LLM_PROVIDER", "openai").strip(),
            summary_model=os.getenv("SUMMARY_MODEL", "gpt-4.1-mini").strip(),
            tts_settle_delay_ms=_i("TTS_SETTLE_DELAY_MS", "100"),
        )
