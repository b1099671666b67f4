"""Settings for the party wizard.

Settings are resolved from three layers, lowest precedence first:

1. dataclass defaults
2. an optional YAML file
3. ``PARTY_WIZARD_*`` environment variables

Example:
    ```python
    settings = WizardSettings.load("wizard.yaml")
    settings.max_tool_steps
    # 10

    # PARTY_WIZARD_MAX_TOOL_STEPS=5 in the environment
    WizardSettings.load().max_tool_steps
    # 5
    ```

A YAML file uses the same field names:

    ```yaml
    max_tool_steps: 8
    chat_model: gpt-4o
    database_path: ./wizard.db
    llm:
      provider: openai
      temperature: 0.4
    ```
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "PARTY_WIZARD_"


@dataclass
class WizardSettings:
    """Runtime settings for the wizard engine and its HTTP surface.

    Attributes:
        max_tool_steps: Maximum model calls per turn in the tool loop
        chat_model: Model used for conversation and tool calling
        extraction_model: Model used for recipe and timeline extraction
        database_path: SQLite file for sessions, or None for the in-memory store
        fetch_timeout_seconds: Timeout for fetching recipe pages
        max_page_chars: Page text is truncated to this length before extraction
        silent_completion_retry: Retry the model once after an empty response
        user_recipe_prompt_limit: Library recipes listed in the menu prompt
        log_json: Emit turn logs as JSON lines
        llm: Extra provider options (provider name, api_base, temperature, ...)
        hooks: Step hook callbacks by event, as accepted by ``StepHooks.from_config``
    """

    max_tool_steps: int = 10
    chat_model: str = "gpt-4o"
    extraction_model: str = "gpt-4o"
    database_path: str | None = None
    fetch_timeout_seconds: float = 15.0
    max_page_chars: int = 20000
    silent_completion_retry: bool = True
    user_recipe_prompt_limit: int = 10
    log_json: bool = False
    llm: dict[str, Any] = field(default_factory=dict)
    hooks: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_tool_steps < 1:
            raise ConfigurationError(
                "max_tool_steps must be at least 1",
                context={"max_tool_steps": self.max_tool_steps},
            )
        if self.fetch_timeout_seconds <= 0:
            raise ConfigurationError(
                "fetch_timeout_seconds must be positive",
                context={"fetch_timeout_seconds": self.fetch_timeout_seconds},
            )
        if self.max_page_chars < 1000:
            raise ConfigurationError(
                "max_page_chars must be at least 1000",
                context={"max_page_chars": self.max_page_chars},
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WizardSettings:
        """Create settings from a dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown settings: {', '.join(unknown)}",
                context={"unknown": unknown},
            )
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> WizardSettings:
        """Load settings from an optional YAML file and the environment.

        Args:
            path: YAML settings file (skipped if None)
            environ: Environment mapping (defaults to ``os.environ``)

        Returns:
            Resolved settings

        Raises:
            ConfigurationError: If the file is unreadable or values are invalid
        """
        data: dict[str, Any] = {}
        if path is not None:
            data.update(_read_yaml(Path(path)))
        data.update(_env_overrides(os.environ if environ is None else environ))
        settings = cls.from_dict(data)
        logger.debug("Loaded wizard settings: %s", settings)
        return settings

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Settings file not found: {path}", context={"path": str(path)}
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Settings file is not valid YAML: {e}", context={"path": str(path)}
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Settings file must contain a mapping", context={"path": str(path)}
        )
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    known = {f.name for f in fields(WizardSettings)} - {"llm", "hooks"}
    overrides: dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in known:
            overrides[name] = _parse_value(value)
    return overrides


def _parse_value(value: str) -> Any:
    """Parse an environment variable value to bool, int, float, or string."""
    if value.lower() in ["true", "yes"]:
        return True
    elif value.lower() in ["false", "no"]:
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value
