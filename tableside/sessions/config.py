from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class SessionConfig:
    max_customers: int = int(os.getenv("TABLESIDE_MAX_CUSTOMERS", "10"))
    idle_timeout_seconds: float = float(os.getenv("TABLESIDE_IDLE_TIMEOUT", "3600"))
    archive_retention_seconds: float = float(os.getenv("TABLESIDE_ARCHIVE_RETENTION", "86400"))
    history_window: int = int(os.getenv("TABLESIDE_HISTORY_WINDOW", "20"))


DEFAULT_SESSION_CONFIG = SessionConfig()
