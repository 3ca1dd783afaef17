import logging
import os
import sys

from decouple import AutoConfig

from .configuration import Config, load_configuration

DEFAULT_CONFIG = os.path.join(os.path.dirname(__file__), "config.toml")
# Directory searched for a .env / settings.ini holding DBSHELL_USER_CONFIG_PATH
CONFIG_BASE_URL = os.getenv(
    "DBSHELL_BASE_CONFIG_PATH", os.path.join(os.path.expanduser("~"), ".dbshell")
)
decouple_config = AutoConfig(search_path=CONFIG_BASE_URL)
USER_CONFIG = decouple_config("DBSHELL_USER_CONFIG_PATH", default="~/.dbshell/config.toml")
ENV_VAR_PREFIX = "DBSHELL"


def load_default_config() -> Config:
    """Load packaged defaults, the user config file and DBSHELL__* overrides."""
    return load_configuration(
        DEFAULT_CONFIG,
        user_config_path=USER_CONFIG,
        env_var_prefix=ENV_VAR_PREFIX,
    )


def _create_logger(name: str) -> logging.Logger:
    """
    Build a logger writing to stderr, formatted per the `[logging]` section.

    Args:
        - name (str): logger name

    Returns:
        - logging.Logger
    """
    logger = logging.getLogger(name)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(config.logging.format, config.logging.datefmt))
    logger.addHandler(handler)
    logger.setLevel(config.logging.level)

    return logger


def configure_logging(testing: bool = False) -> logging.Logger:
    """
    Set up the "dbshell" logger that every module logs through.

    Args:
        - testing (bool, optional): set up "dbshell-test-logger" instead, leaving
            the real logger untouched

    Returns:
        - logging.Logger
    """
    return _create_logger("dbshell-test-logger" if testing else "dbshell")


def get_logger(name: str = None) -> logging.Logger:
    """
    Return the "dbshell" logger, or its child `dbshell.{name}` when a name is given.

    Children have no handlers of their own and use the parent's.
    """
    if name is None:
        return dbshell_logger
    return dbshell_logger.getChild(name)


config = load_default_config()
dbshell_logger = configure_logging()
# query output goes to stdout; keep log records off the root logger
dbshell_logger.propagate = False
