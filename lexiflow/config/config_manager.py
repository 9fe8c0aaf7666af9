"""User settings manager with defaults, environment overlay and validation."""

import copy
import os
from typing import Any, Dict, Optional

from .prompts import DEFAULT_PROMPTS


class SettingsManager:
    """
    Manages the user settings held by the vocabulary store.

    Settings are a flat dict with the persisted (camelCase) key names.
    Values start from DEFAULTS, are overridden by environment variables,
    then by whatever the persisted state or the caller provides.

    Usage:
        settings = SettingsManager()
        settings.update({"concurrencyLimit": 4})
        limit = settings.concurrency_limit
    """

    PROVIDERS = ("gemini", "openai")
    THEMES = ("light", "dark", "system")
    CREDENTIAL_KEYS = ("apiKey",)

    # Default values for all settings
    # NOTE: API keys should come from environment variables, not defaults!
    DEFAULTS: Dict[str, Any] = {
        "apiKey": "",
        "provider": "gemini",
        "baseUrl": "http://localhost:8000/v1",
        "modelName": "meta-llama/Meta-Llama-3-8B-Instruct",
        "concurrencyLimit": 1,
        "useCustomPrompts": False,
        "theme": "dark",
        "prompts": None,
    }

    # Environment variables consulted on construction
    ENV_KEYS: Dict[str, str] = {
        "apiKey": "LEXIFLOW_API_KEY",
        "provider": "LEXIFLOW_PROVIDER",
        "baseUrl": "LEXIFLOW_BASE_URL",
        "modelName": "LEXIFLOW_MODEL",
        "concurrencyLimit": "LEXIFLOW_CONCURRENCY",
        "useCustomPrompts": "LEXIFLOW_CUSTOM_PROMPTS",
        "theme": "LEXIFLOW_THEME",
    }

    def __init__(self, initial: Optional[Dict[str, Any]] = None, use_env: bool = True) -> None:
        """
        Initialize the settings manager.

        Args:
            initial: Settings to apply on top of defaults (e.g. from a saved state)
            use_env: Whether to apply the environment overlay
        """
        self._settings: Dict[str, Any] = copy.deepcopy(self.DEFAULTS)
        if use_env:
            self._settings.update(self._load_env())
        if initial:
            self.update(initial)

    def _load_env(self) -> Dict[str, Any]:
        """Collect settings from environment variables."""
        env_settings = {}
        for key, env_name in self.ENV_KEYS.items():
            env_value = os.environ.get(env_name)
            if env_value is not None:
                env_settings[key] = self._parse_env_value(env_value, key)
        return env_settings

    def _parse_env_value(self, value: str, key: str) -> Any:
        """
        Parse environment variable value to appropriate type.

        Args:
            value: The string value from environment
            key: The setting key (used to infer expected type)

        Returns:
            Parsed value in appropriate type
        """
        default = self.DEFAULTS.get(key)

        if isinstance(default, bool):
            return value.lower() in ("true", "1", "yes", "on")
        elif isinstance(default, int):
            try:
                return int(value)
            except ValueError:
                return default
        else:
            return value

    def validate(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate and normalise a partial settings update.

        Raises:
            ValueError: If a value is out of range
        """
        cleaned = dict(partial)

        if "concurrencyLimit" in cleaned:
            try:
                limit = int(cleaned["concurrencyLimit"])
            except (TypeError, ValueError):
                raise ValueError(f"concurrencyLimit must be an integer, got {cleaned['concurrencyLimit']!r}")
            if limit < 1:
                raise ValueError(f"concurrencyLimit must be >= 1, got {limit}")
            cleaned["concurrencyLimit"] = limit

        if "provider" in cleaned and cleaned["provider"] not in self.PROVIDERS:
            raise ValueError(f"Unknown provider: {cleaned['provider']!r}")

        if "theme" in cleaned and cleaned["theme"] not in self.THEMES:
            raise ValueError(f"Unknown theme: {cleaned['theme']!r}")

        if cleaned.get("prompts") is not None:
            if not isinstance(cleaned["prompts"], dict):
                raise ValueError(f"prompts must be a mapping, got {type(cleaned['prompts']).__name__}")
            cleaned["prompts"] = {**DEFAULT_PROMPTS, **cleaned["prompts"]}

        return cleaned

    def update(self, partial: Dict[str, Any]) -> None:
        """Shallow-merge a partial update. Nothing changes if validation fails."""
        self._settings.update(self.validate(partial))

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Returns a deep copy for mutable objects (dict, list) to prevent
        accidental modification of internal state.
        """
        value = self._settings.get(key, default)
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def get_all(self) -> Dict[str, Any]:
        """Get a copy of all current settings."""
        return copy.deepcopy(self._settings)

    def export(self, include_credentials: bool = False) -> Dict[str, Any]:
        """Get settings for a snapshot, with credentials blanked by default."""
        data = self.get_all()
        if not include_credentials:
            for key in self.CREDENTIAL_KEYS:
                data[key] = ""
        return data

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset settings to defaults.

        Args:
            key: Specific key to reset. If None, resets all settings.
        """
        if key is not None:
            if key in self.DEFAULTS:
                self._settings[key] = copy.deepcopy(self.DEFAULTS[key])
        else:
            self._settings = copy.deepcopy(self.DEFAULTS)

    @property
    def concurrency_limit(self) -> int:
        return int(self._settings.get("concurrencyLimit") or 1)

    @property
    def is_configured(self) -> bool:
        """Gemini needs a key; OpenAI-compatible local servers often don't."""
        if self._settings.get("provider") == "openai":
            return True
        return bool(self._settings.get("apiKey"))

    def prompt(self, name: str) -> str:
        """Get the prompt template to use for a task."""
        custom = self._settings.get("prompts") or {}
        if self._settings.get("useCustomPrompts") and custom.get(name):
            return custom[name]
        return DEFAULT_PROMPTS[name]
