import os
import re
import socket
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Optional, Tuple, Type

import yaml
from pydantic import BaseModel, BeforeValidator, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from packetpilot.core.errors import ConfigurationError
from shared.models import CounterSourceKind

VERSION = "0.1.0"

CONFIG_ENV_VAR = "PACKETPILOT_CONFIG"

# Searched in order when PACKETPILOT_CONFIG is not set; first match wins
CONFIG_SEARCH_PATHS = (
    Path("config.yaml"),
    Path("/etc/packetpilot/config.yaml"),
    Path.home() / ".packetpilot" / "config.yaml",
)

LOG_LEVELS = ("debug", "info", "warn", "warning", "error")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value) -> float:
    """Parse a duration such as "500ms", "5s" or "1m30s" into seconds.

    Plain numbers are taken as seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, timedelta):
        return value.total_seconds()

    text = str(value).strip()
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


Duration = Annotated[float, BeforeValidator(parse_duration)]


def get_hostname() -> str:
    """Get the system hostname."""
    return socket.gethostname()


def get_device_id() -> str:
    """Stable device identity: the machine id, falling back to the hostname."""
    try:
        machine_id = Path("/etc/machine-id").read_text().strip()
        if machine_id:
            return machine_id
    except OSError:
        pass
    return get_hostname() or "unknown-device"


def find_config_file() -> Optional[Path]:
    """Locate the YAML config file, if any."""
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)
    for path in CONFIG_SEARCH_PATHS:
        if path.is_file():
            return path
    return None


class ServerSettings(BaseModel):
    host: str = Field(default="localhost", min_length=1)
    port: int = Field(default=8080, ge=1, le=65535)
    use_tls: bool = False
    api_key: str = ""
    device_id: str = Field(default_factory=get_device_id, min_length=1)

    @property
    def base_url(self) -> str:
        protocol = "https" if self.use_tls else "http"
        return f"{protocol}://{self.host}:{self.port}"


class LoggingSettings(BaseModel):
    level: str = "info"
    file: str = "/var/log/packetpilot/daemon.log"  # empty logs to stdout only
    max_size: int = Field(default=100, ge=1)  # megabytes before rotation
    max_backups: int = Field(default=30, ge=0)
    compress: bool = True

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}")
        return value


class MonitorSettings(BaseModel):
    interface: str = Field(default="any", min_length=1)
    update_interval: Duration = Field(default=5.0, gt=0)
    usage_file: str = "/var/lib/packetpilot/daily_usage.json"
    counter_source: CounterSourceKind = CounterSourceKind.AUTO


class ReporterSettings(BaseModel):
    report_interval: Duration = Field(default=30.0, gt=0)
    batch_size: int = Field(default=100, ge=1)
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay: Duration = Field(default=5.0, ge=0)
    timeout: Duration = Field(default=30.0, gt=0)


class ControlSettings(BaseModel):
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = Field(default=7878, ge=1, le=65535)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class AgentSettings(BaseSettings):
    # Collector connection and device identity
    server: ServerSettings = Field(default_factory=ServerSettings)

    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    # Interface accounting
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)

    # Report delivery
    reporter: ReporterSettings = Field(default_factory=ReporterSettings)

    # Local control API
    control: ControlSettings = Field(default_factory=ControlSettings)

    model_config = SettingsConfigDict(
        env_prefix="PACKETPILOT_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Environment overrides the YAML file, which overrides defaults
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=find_config_file()),
            file_secret_settings,
        )


def load_settings(**overrides) -> AgentSettings:
    """Build the daemon settings once at startup.

    Raises ConfigurationError on a missing explicit config file, unparsable
    YAML or any invalid value.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit and not Path(explicit).is_file():
        raise ConfigurationError(f"config file {explicit} not found")

    try:
        return AgentSettings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"config validation failed: {e}") from e
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"error reading config file: {e}") from e
