"""
Logging configuration for the shapes-interop command.

Logging is configured from a YAML file holding a :mod:`logging.config`
dictionary (see ``logging-config.yaml`` in the repository root).  When
the file does not exist, a console handler at ERROR level is installed
instead.
"""

import logging
import logging.config
import sys
from pathlib import Path

import click
import yaml

from .exceptions import ShapesConfigError

DEFAULT_CONFIG_FILE = "logging-config.yaml"

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"


def init_logging(path: str | Path = DEFAULT_CONFIG_FILE) -> bool:
    """Configure logging from *path*.

    Returns:
        ``True`` if the file was used, ``False`` if it was missing and
        the fallback configuration was installed.

    Raises:
        ShapesConfigError: The file exists but cannot be read, parsed
            or applied.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        click.echo("No config file.")
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT, stream=sys.stdout)
        return False
    except OSError as exc:
        raise ShapesConfigError(f"Config problem: cannot read {path}: {exc}") from exc

    try:
        config = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ShapesConfigError(f"Config problem: {path} is not valid YAML: {exc}") from exc
    if not isinstance(config, dict):
        raise ShapesConfigError(f"Config problem: {path} must hold a mapping")
    config.setdefault("version", 1)

    try:
        logging.config.dictConfig(config)
    except (ValueError, TypeError, AttributeError, ImportError) as exc:
        raise ShapesConfigError(f"Config problem: {path}: {exc}") from exc
    return True
