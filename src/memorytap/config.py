"""Application configuration.

Loads settings from ~/.memorytap/config.json and lets environment
variables (usually from a .env file) override them.
"""

import getpass
import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".memorytap"
DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.json"

BACKENDS = ("sqlite", "local")


def _default_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "local"


@dataclass
class AppConfig:
    """Configuration for a memorytap session.

    Attributes:
        data_dir: Root for the database, audio files and logs.
        backend: "sqlite" for the table store, "local" for the JSON store.
        user_id: Owner id used when no identity is supplied.
        min_audio_bytes: Recordings below this size are rejected unprocessed.
        model: Groq chat model for classification and insights.
        transcription_model: Groq speech-to-text model.
        language: Spoken language hint for transcription.
        briefing_window: How many recent memories the briefing looks at.
        reminders_limit: How many reminders the focus view lists.
    """

    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    backend: str = "sqlite"
    user_id: str = field(default_factory=_default_user)
    min_audio_bytes: int = 1000
    model: str = "llama-3.3-70b-versatile"
    transcription_model: str = "whisper-large-v3"
    language: str | None = "en"
    briefing_window: int = 15
    reminders_limit: int = 5

    def __post_init__(self) -> None:
        """Validate config and normalize paths."""
        self.data_dir = Path(self.data_dir).expanduser()

        if self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {', '.join(BACKENDS)}")
        if self.min_audio_bytes < 0:
            raise ValueError("min_audio_bytes must not be negative")
        if self.briefing_window < 1:
            raise ValueError("briefing_window must be at least 1")
        if self.reminders_limit < 1:
            raise ValueError("reminders_limit must be at least 1")

    @property
    def db_path(self) -> Path:
        return self.data_dir / "memories.db"

    @property
    def local_store_path(self) -> Path:
        return self.data_dir / "memories.json"

    @property
    def audio_dir(self) -> Path:
        return self.data_dir / "audio"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


_ENV_OVERRIDES = {
    "MEMORYTAP_DATA_DIR": ("data_dir", Path),
    "MEMORYTAP_BACKEND": ("backend", str),
    "MEMORYTAP_USER": ("user_id", str),
    "MEMORYTAP_MIN_AUDIO_BYTES": ("min_audio_bytes", int),
    "GROQ_MODEL": ("model", str),
    "GROQ_TRANSCRIPTION_MODEL": ("transcription_model", str),
}


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load AppConfig from a JSON file and the environment.

    The config file is a flat object whose keys match AppConfig fields:
    ```json
    {
      "backend": "local",
      "min_audio_bytes": 2000,
      "briefing_window": 10
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        AppConfig instance with file values and environment overrides.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    data: dict[str, Any] = {}

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
    else:
        try:
            with open(path, "r") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                data = loaded
            else:
                logger.warning("Config in %s is not an object. Using defaults.", path)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        except OSError as e:
            logger.warning("Cannot read %s: %s. Using defaults.", path, e)

    return _parse_config(data)


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Merge file values and environment overrides into an AppConfig."""
    known = {f.name for f in fields(AppConfig)}
    values = {}
    for key, value in data.items():
        if key in known:
            values[key] = value
        else:
            logger.warning("Ignoring unknown config key: %s", key)

    for env_name, (key, cast) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw:
            try:
                values[key] = cast(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", env_name, raw)

    return AppConfig(**values)
