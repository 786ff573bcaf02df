"""Configuration loader for envupgrader."""

from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

from envupgrader.errors import ValidationError


def _text(key: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Config key '{key}' must be a non-empty string.", stage="config")
    return value


def _flag(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"Config key '{key}' must be true or false.", stage="config")
    return value


def _seconds(key: str, value: Any) -> float:
    # YAML booleans are ints in Python.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Config key '{key}' must be a number.", stage="config")
    if value < 0:
        raise ValidationError(f"Config key '{key}' must not be negative.", stage="config")
    return float(value)


def _command(key: str, value: Any):
    if isinstance(value, list):
        if not value or not all(isinstance(part, (str, int, float)) and not isinstance(part, bool) for part in value):
            raise ValidationError(
                f"Config key '{key}' must be a command string or a non-empty list of arguments.",
                stage="config",
            )
        return [str(part) for part in value]
    return _text(key, value)


class ConfigLoader:
    """Loads CLI defaults from a YAML file and checks the type of every value.

    Values come back normalized: poll settings and ``deadline_minutes`` as
    floats, ``upgrade_command`` as either a string or a list of strings.
    """

    FIELDS: Dict[str, Callable[[str, Any], Any]] = {
        "app": _text,
        "name": _text,
        "all": _flag,
        "verbose": _flag,
        "log_file": _text,
        "store_file": _text,
        "report_file": _text,
        "region": _text,
        "stack_name_template": _text,
        "upgrade_command": _command,
        "poll_initial_interval": _seconds,
        "poll_multiplier": _seconds,
        "poll_max_interval": _seconds,
        "poll_timeout": _seconds,
        "deadline_minutes": _seconds,
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        document = self._read(config_path)
        unknown = sorted(str(key) for key in document if key not in self.FIELDS)
        if unknown:
            raise ValidationError(f"Unknown configuration keys: {', '.join(unknown)}", stage="config")

        settings = {}
        for key, value in document.items():
            # An empty key means "use the default".
            if value is None:
                continue
            settings[key] = self.FIELDS[key](key, value)

        if settings.get("all") and settings.get("name"):
            raise ValidationError(
                f"Config file '{config_path}' sets both 'name' and 'all'; keep only one.",
                stage="config",
            )
        return settings

    @staticmethod
    def _read(config_path: str) -> Dict[str, Any]:
        path = Path(config_path)
        if not path.is_file():
            raise ValidationError(f"Config file not found: {config_path}", stage="config")

        try:
            document = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ValidationError(f"Invalid config file '{config_path}': {exc}", stage="config") from exc

        if document is None:
            return {}
        if not isinstance(document, dict):
            raise ValidationError(f"Config file '{config_path}' must contain a YAML mapping at the root.", stage="config")
        return document
