"""
Tests for shapes_interop.log_setup — YAML logging configuration.
"""

import logging

import pytest

from shapes_interop.exceptions import ShapesConfigError
from shapes_interop.log_setup import init_logging


_CONFIG = """\
disable_existing_loggers: false
handlers:
  out:
    class: logging.StreamHandler
    stream: ext://sys.stdout
loggers:
  shapes.test_log_setup:
    level: DEBUG
    handlers: [out]
    propagate: false
"""


def test_config_file_applied(tmp_path):
    path = tmp_path / "logging.yaml"
    path.write_text(_CONFIG)
    assert init_logging(path) is True
    logger = logging.getLogger("shapes.test_log_setup")
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_missing_file_falls_back(tmp_path, capsys):
    assert init_logging(tmp_path / "nope.yaml") is False
    assert capsys.readouterr().out == "No config file.\n"


@pytest.mark.parametrize(
    "text",
    [
        "loggers: [unclosed",                                  # not YAML
        "- just\n- a list\n",                                  # not a mapping
        "handlers:\n  h:\n    class: no.such.Handler\n",       # dictConfig rejects
    ],
)
def test_broken_config_raises(tmp_path, text):
    path = tmp_path / "logging.yaml"
    path.write_text(text)
    with pytest.raises(ShapesConfigError, match="Config problem"):
        init_logging(path)


def test_unreadable_path_raises(tmp_path):
    with pytest.raises(ShapesConfigError):
        init_logging(tmp_path)
