from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env if present
load_dotenv()


@dataclass(frozen=True)
class Settings:
    http_timeout: float = float(os.getenv("AQUA_HTTP_TIMEOUT", "45"))
    token_expiry_margin_seconds: int = int(os.getenv("AQUA_TOKEN_EXPIRY_MARGIN_SECONDS", "60"))
    session_idle_hours: int = int(os.getenv("AQUA_SESSION_IDLE_HOURS", "12"))
    log_level: str = os.getenv("AQUA_LOG_LEVEL", "INFO")
    # CLI defaults; the HTTP API takes credentials per session from headers
    aqua_url: str = os.getenv("AQUA_URL", "")
    aqua_username: str = os.getenv("AQUA_USERNAME", "")
    aqua_password: str = os.getenv("AQUA_PASSWORD", "")
    aqua_project_id: str = os.getenv("AQUA_PROJECT_ID", "")


settings = Settings()
