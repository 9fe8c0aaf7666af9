"""Utility functions."""

import time
import uuid
from pathlib import Path


def now_ms() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Generate a fresh entity id."""
    return str(uuid.uuid4())


def minutes_to_ms(minutes: float) -> int:
    return int(minutes * 60 * 1000)


def ensure_dir(path: str) -> None:
    """Ensure directory exists."""
    Path(path).mkdir(parents=True, exist_ok=True)
