import os
from typing import Annotated, Optional

from rich import print
import typer

from teamsync import logger
from teamsync.cli import APP_KWARGS
from teamsync.config import BRIDGE_URL_ENV_VAR, ConfigFileError, default_config_path, get_config, load_config, save_config
from teamsync.interface import show_config


APP = typer.Typer(**APP_KWARGS)

@APP.command(short_help='show or set the bridge URL')
def url(
    new_url: Annotated[Optional[str], typer.Argument(metavar='URL', show_default=False, help='New bridge URL')] = None
) -> None:
    """Show the bridge URL, or set it if one is given."""
    if new_url is None:
        with logger.catch_errors(ConfigFileError):
            current = get_config().bridge_url
        if current is None:
            logger.exit_with_error("No bridge URL is configured.\nRun 'teamsync config url [URL]' to set one.")
        print(current)
        return
    new_url = new_url.strip()
    if not new_url.startswith(('http://', 'https://')):
        logger.exit_with_error(f'Invalid bridge URL {new_url!r} (must begin with http:// or https://)')
    with logger.catch_errors(ConfigFileError):
        path = default_config_path()
        config = load_config(path)
        config.bridge.url = new_url
        save_config(config, path)
        config.update_config()
    logger.info(f'Saved bridge URL to {path}')
    if os.environ.get(BRIDGE_URL_ENV_VAR):
        logger.warning(f'The {BRIDGE_URL_ENV_VAR} environment variable overrides this setting')

@APP.command(short_help='print out path to the configurations')
def path() -> None:
    """Print out path to the configurations."""
    print(default_config_path())

@APP.command(short_help='show the configurations')
def show() -> None:
    """Show the configurations."""
    with logger.catch_errors(ConfigFileError):
        config = get_config()
    show_config(config)
