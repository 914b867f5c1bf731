"""Runtime settings and logging setup."""

import logging
import logging.config
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


class Settings(BaseSettings):
    """Batch-run configuration, read from the environment and ``.env``.

    Built once at startup; command line flags are applied as constructor
    overrides and the result is passed down explicitly.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", frozen=True, extra="ignore")

    concurrency: int = Field(default=2, ge=1)
    output_dir: Path = Path("output")
    temp_dir: Path = Path("temp")
    data_file: Path = Path("data/videos.json")
    progress_file: Path = Path("progress.json")
    log_level: str = "INFO"
    log_file: Path | None = None
    dev_mode: bool = False

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level {value!r}")
        return level

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.dev_mode else self.log_level


def load_settings(**overrides: Any) -> Settings:
    """Build Settings, letting non-None *overrides* win over the environment."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


def configure_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "standard",
            "stream": "ext://sys.stderr",
        },
    }
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "standard",
            "filename": str(log_file),
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "encoding": "utf8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": {"format": LOG_FORMAT}},
        "handlers": handlers,
        "loggers": {
            "clipsplit": {
                "handlers": list(handlers),
                "level": level,
                "propagate": False,
            },
        },
        "root": {"handlers": ["console"], "level": "WARNING"},
    })
