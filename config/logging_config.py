"""
Logging for EventCount.
Every module logs through a child of the "eventcount" logger, which writes
coloured lines to the terminal and a rotating file under LOGS_DIR. The CLI
event listing is written through the same logger.
"""

import logging
import logging.handlers
import colorlog
from config import settings


def setup_logging(name: str = settings.LOGGER_NAME, level: int = None) -> logging.Logger:
    """
    Attach the terminal and log file handlers to a logger.

    Handlers are attached once; later calls only adjust the level.

    Args:
        name: Logger to configure, normally the application logger
        level: Terminal level (DEBUG when DEBUG=true in the environment, else INFO)

    Returns:
        The configured logger
    """
    if level is None:
        level = logging.DEBUG if settings.DEBUG_MODE else logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    console_handler = colorlog.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        f"%(log_color)s{settings.LOG_FORMAT}",
        datefmt=settings.LOG_DATE_FORMAT,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    # The file keeps DEBUG lines, including per-save and scheduler details
    file_handler = logging.handlers.RotatingFileHandler(
        settings.LOGS_DIR / settings.LOG_FILE_NAME,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        settings.LOG_FORMAT,
        datefmt=settings.LOG_DATE_FORMAT
    ))
    logger.addHandler(file_handler)

    # Job store and scheduler chatter is only useful when debugging them directly
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Return a module logger nested under the application logger.

    "src.events.store" becomes "eventcount.src.events.store", so raising the
    application logger to DEBUG (--debug) affects every module at once.

    Args:
        name: Module name, normally __name__

    Returns:
        Child logger sharing the application handlers
    """
    root_name = settings.LOGGER_NAME
    if not logging.getLogger(root_name).handlers:
        setup_logging(root_name)

    if name != root_name and not name.startswith(f"{root_name}."):
        name = f"{root_name}.{name}"

    return logging.getLogger(name)
