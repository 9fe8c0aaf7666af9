"""Global settings and configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


@dataclass
class Config:
    """Application-wide configuration."""

    # Cross-platform paths using pathlib
    # BASE_DIR is the project root (parent of lexiflow/)
    BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()

    DATA_DIR: str = os.environ.get("LEXIFLOW_DATA_DIR", str(BASE_DIR / "data"))
    STATE_FILE: str = os.environ.get(
        "LEXIFLOW_STATE_FILE", str(Path(DATA_DIR) / "lexiflow-state.json")
    )
    LOG_FILE: str = os.environ.get("LEXIFLOW_LOG_FILE", "")
    LOG_LEVEL: str = os.environ.get("LEXIFLOW_LOG_LEVEL", "INFO")

    # Persisted document schema
    STATE_VERSION: int = 1

    # LLM requests
    REQUEST_TIMEOUT: int = 60
    MAX_TOKENS: int = 1000
    TEMPERATURE: float = 0.7

    # Practice
    SELECTION_TEMPERATURE: float = 0.5
    MAX_HINTS: int = 3
    CLOZE_BLANK: str = "__________"
