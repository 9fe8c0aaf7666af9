"""Configuration module for LexiFlow."""

from .settings import Config
from .config_manager import SettingsManager
from .prompts import DEFAULT_PROMPTS, render_prompt

__all__ = [
    'Config',
    'SettingsManager',
    'DEFAULT_PROMPTS',
    'render_prompt',
]
