"""
research_core/config.py
=======================
Central configuration, loaded from environment variables (and a local
.env file when present).
"""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Research API ─────────────────────────────────────────────────────────────
API_BASE_URL: str = os.getenv("RESEARCH_API_BASE_URL", "http://localhost:8000/api/v1")
API_TIMEOUT: float = float(os.getenv("RESEARCH_API_TIMEOUT", "60"))

# ── Local identity cache ─────────────────────────────────────────────────────
SESSION_FILE: Path = Path(
    os.getenv("RESEARCH_SESSION_FILE", str(Path.home() / ".research_hub" / "session.json"))
).expanduser()

# ── Exchange defaults ────────────────────────────────────────────────────────
DEFAULT_TIER: str = os.getenv("RESEARCH_DEFAULT_TIER", "free")
CONTEXT_MODE: str = os.getenv("RESEARCH_CONTEXT_MODE", "with_history")

# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("RESEARCH_LOG_LEVEL", "WARNING").upper()


def configure_logging() -> None:
    """Attach a basic handler to the package logger at LOG_LEVEL."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
