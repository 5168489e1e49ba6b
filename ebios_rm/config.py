"""Settings file loading and logging setup."""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


DEFAULT_CONFIG_FILE = 'ebios-rm.yaml'
ENV_PREFIX = 'EBIOS_RM_'
LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'


class ConfigError(Exception):
    """Raised when the settings file cannot be read or is invalid."""
    pass


class Settings(BaseSettings):
    """Runtime settings of the editor.

    Keyword arguments carry the settings file values; ``EBIOS_RM_*``
    environment variables take precedence over them.
    """
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra='ignore',
    )

    data_dir: Path = Field(default=Path('.ebios-rm'))
    technique_source: Optional[str] = None
    fetch_timeout: float = 10.0
    log_level: str = 'WARNING'
    diagram_width: int = 600
    diagram_height: int = 600

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Unknown log level: {v}')
        return level

    @field_validator('fetch_timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError('fetch_timeout must be positive')
        return v


def load_settings(path: Optional[str | Path] = None) -> Settings:
    """Read settings from a YAML file; the environment overrides it.

    A missing default file is not an error; a missing explicit path is.
    """
    config_path = Path(path) if path else Path(DEFAULT_CONFIG_FILE)
    values = {}
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                values = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read {config_path}: {e}")
        if not isinstance(values, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
    elif path:
        raise ConfigError(f"Settings file not found: {config_path}")

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}")


def configure_logging(level: str = 'WARNING') -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)
