"""Utils module."""

from .helpers import (
    now_ms,
    new_id,
    minutes_to_ms,
    ensure_dir,
)
from .parsing import TextParser
from .logger import setup_logger

__all__ = [
    'now_ms',
    'new_id',
    'minutes_to_ms',
    'ensure_dir',
    'TextParser',
    'setup_logger'
]
