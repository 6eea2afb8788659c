from pathlib import Path
from typing import Optional

import yaml

from codeql_report_core.errors import ConfigError

DEFAULT_CONFIG: dict = {
    "output": "codeql-report.csv",
    "repository_column": "Repository",
    "alert_number_column": "Alert Number",
    "severity_field": "security_severity_level",  # or "severity" (the generic rule severity)
    "low_rate_limit_threshold": 10,
    "max_rate_limit_retries": 5,  # None = keep waiting for as long as the API asks
    "deadline_minutes": 30,
    "request_timeout": 15,
    "base_url": None,  # GitHub Enterprise Server API root, e.g. https://ghe.example.com/api/v3
}

SEVERITY_FIELDS = ("security_severity_level", "severity")


def load_config(config_path: str = ".codeql-report.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .codeql-report.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            try:
                file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Config file {config_path} is not valid YAML: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    return config


def validate_config(config: dict) -> None:
    """Raise ConfigError if a setting cannot be used as-is."""
    if config.get("severity_field") not in SEVERITY_FIELDS:
        raise ConfigError(
            f"Unknown severity_field: {config.get('severity_field')!r}. Choose one of: {', '.join(SEVERITY_FIELDS)}."
        )

    for key in ("deadline_minutes", "request_timeout"):
        value = config.get(key)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
            raise ConfigError(f"{key} must be a positive number, got {value!r}")

    for key in ("low_rate_limit_threshold", "max_rate_limit_retries"):
        value = config.get(key)
        if key == "max_rate_limit_retries" and value is None:
            continue
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ConfigError(f"{key} must be a non-negative integer, got {value!r}")

    for key in ("output", "repository_column", "alert_number_column"):
        if not config.get(key):
            raise ConfigError(f"{key} must not be empty")


def require_flags(values: dict) -> None:
    """Raise ConfigError naming every flag in ``values`` that has no value."""
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ConfigError(f"required flag(s) not provided: {', '.join(missing)}", missing=missing)
