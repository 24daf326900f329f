from dataclasses import asdict
import json
import os
from pathlib import Path
from typing import Annotated, Literal, Optional

from fancy_dataclass import ConfigDataclass
from pydantic import Field, ValidationError
from pydantic.dataclasses import dataclass
from typing_extensions import Doc

from teamsync.utils import TeamSyncError


CONFIG_DIR_NAME = '.teamsync'
CONFIG_FILE_NAME = 'config.json'
# environment variable which overrides the stored bridge URL
BRIDGE_URL_ENV_VAR = 'TEAMSYNC_BRIDGE_URL'

DEFAULT_DATE_FORMAT = '%b %d'

SyncMode = Literal['direct', 'outbox']
GroupByOption = Literal['status', 'priority', 'assignee', 'project']


class ConfigFileError(TeamSyncError):
    """Error reading or writing the configuration file."""


@dataclass
class BridgeConfig:
    """Bridge endpoint configurations."""
    url: Optional[str] = Field(
        default=None,
        description='URL of the spreadsheet bridge endpoint'
    )
    timeout: Optional[float] = Field(
        default=None,
        description='request timeout in seconds (if unset, uses the HTTP client default)',
        gt=0
    )


@dataclass
class SyncConfig:
    """Push synchronization configurations."""
    mode: SyncMode = Field(
        default='direct',
        description="'direct' sends each change immediately without retry, 'outbox' queues changes per entity and retries"
    )
    outbox_size: int = Field(
        default=100,
        description='max number of pending changes held in the outbox',
        ge=1
    )
    max_attempts: int = Field(
        default=3,
        description='max number of send attempts per change in outbox mode',
        ge=1
    )
    backoff: float = Field(
        default=0.5,
        description='initial retry delay in seconds (doubles after each failed attempt)',
        ge=0
    )


@dataclass
class DisplayConfig:
    """Display configurations."""
    date_format: str = Field(
        default=DEFAULT_DATE_FORMAT,
        description='preferred format for displaying due dates'
    )
    group_by: GroupByOption = Field(
        default='status',
        description='default grouping of board columns'
    )


@dataclass
class Config(ConfigDataclass):
    """Collection of global configurations."""
    bridge: Annotated[BridgeConfig, Doc('bridge configs')] = Field(default_factory=BridgeConfig)
    sync: Annotated[SyncConfig, Doc('sync configs')] = Field(default_factory=SyncConfig)
    display: Annotated[DisplayConfig, Doc('display configs')] = Field(default_factory=DisplayConfig)

    @property
    def bridge_url(self) -> Optional[str]:
        """Gets the bridge URL, preferring the environment variable if it is set."""
        return os.environ.get(BRIDGE_URL_ENV_VAR) or self.bridge.url


def default_config_path() -> Path:
    """Gets the path to the user's configuration file."""
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME

def load_config(path: Optional[Path] = None) -> Config:
    """Loads configurations from a JSON file.
    If the file does not exist, returns the default configurations."""
    path = path or default_config_path()
    if not path.exists():
        return Config()
    try:
        with open(path) as f:
            data = json.load(f)
        return Config(**data)
    except (json.JSONDecodeError, OSError, TypeError, ValidationError) as e:
        raise ConfigFileError(f'When loading config file {path}: {e}') from None

def save_config(config: Config, path: Optional[Path] = None) -> Path:
    """Saves configurations to a JSON file, returning the path."""
    path = path or default_config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(asdict(config), f, indent=2)
    except OSError as e:
        raise ConfigFileError(f'When saving config file {path}: {e}') from None
    return path

def get_config() -> Config:
    """Gets the current global configurations.
    On first access, these are loaded from the user's configuration file."""
    config = Config.get_config()
    if config is None:
        config = load_config()
        config.update_config()
    return config
