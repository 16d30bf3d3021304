"""Persistent JSON config.

Holds the infrastructure repository URL, its default branch, the terraform
executable, and the log file location. Missing keys fall back to defaults;
a config that cannot be read, decoded, or written is a startup failure.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir

from .errors import ConfigurationError

APP_NAME = "infradeck"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
DEFAULT_DATA_DIR = Path(user_data_dir(APP_NAME, appauthor=False))
REPO_DIRNAME = "infra"


@dataclass(frozen=True)
class AppConfig:
    repo_url: str = "https://github.com/jlgore/nsfw-infra"
    default_branch: str = "main"
    terraform_path: str = "terraform"
    log_file: str = "infradeck.log"

    def log_path(self, data_dir: Path) -> Path:
        """Resolve ``log_file``; relative paths live under ``data_dir``."""
        path = Path(self.log_file).expanduser()
        return path if path.is_absolute() else data_dir / path


def _coerce_config(data: dict[str, object]) -> AppConfig:
    """Build a config from decoded JSON; non-string or blank values keep defaults."""
    defaults = AppConfig()
    values: dict[str, str] = {}
    for field in fields(AppConfig):
        raw = data.get(field.name)
        if isinstance(raw, str) and raw.strip():
            values[field.name] = raw.strip()
        else:
            values[field.name] = getattr(defaults, field.name)
    return AppConfig(**values)


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load the config at ``config_path``; a missing file yields defaults."""
    if not config_path.exists():
        return AppConfig()
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"error opening config file {config_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"error decoding config file {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {config_path} must contain a JSON object")
    return _coerce_config(data)


def save_config(config: AppConfig, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
    """Persist ``config`` as pretty-printed JSON."""
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(asdict(config), indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"error writing config file {config_path}: {exc}") from exc


def init_config(config_path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load config, writing the defaults back when no file existed yet."""
    existed = config_path.exists()
    config = load_config(config_path)
    if not existed:
        save_config(config, config_path)
    return config
