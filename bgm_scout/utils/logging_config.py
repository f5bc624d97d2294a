import logging
import sys
from pathlib import Path

# Library loggers that are noisy at INFO: the discovery cache warns on every
# build() without oauth2client, and httplib2 logs each connection.
QUIET_LOGGERS = {
    "googleapiclient.discovery_cache": logging.ERROR,
    "googleapiclient.discovery": logging.WARNING,
    "httplib2": logging.WARNING,
    "urllib3": logging.WARNING,
}

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def quiet_third_party(level_overrides: dict = None):
    for name, level in {**QUIET_LOGGERS, **(level_overrides or {})}.items():
        logging.getLogger(name).setLevel(level)


def setup_logging(log_file: str = None, level: str = "INFO") -> logging.Logger:
    """Configure the ``bgm_scout`` logger for console and an optional file.

    API client libraries are held at WARNING or above unless ``level`` is
    DEBUG, so a collection run's output stays readable.
    """
    app_logger = logging.getLogger("bgm_scout")
    app_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if app_logger.level > logging.DEBUG:
        quiet_third_party()

    if app_logger.handlers:
        return app_logger

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    app_logger.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        app_logger.addHandler(file_handler)

    return app_logger
