import logging
import sys
from loguru import logger

from ..config.paths import get_user_log_dir

# Standard-library loggers of the extraction stack; kept at WARNING so debug runs stay readable
NOISY_LIBRARIES = ("aiohttp", "asyncio", "charset_normalizer", "bs4")

def setup_logging(level="INFO", verbose=False, log_to_file=True):
    """
    Configures loguru for the CLI and the controller.

    Console output goes to stderr: the CLI prints assembled documents on stdout.
    The optional file log keeps DEBUG detail for a week.
    """
    log_level = "DEBUG" if verbose else level
    logger.remove()

    fmt_console = "<level>{level: <8}</level> | <cyan>{name}:{function}:{line}</cyan> - <level>{message}</level>"
    logger.add(sys.stderr, level=log_level, format=fmt_console, colorize=True)

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not log_to_file:
        logger.debug(f"Logging initialized. Level: {log_level}. File logging off.")
        return

    fmt_file = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {process} | {thread.name} | {name}:{function}:{line} - {message}"
    try:
        log_file_str = str(get_user_log_dir() / "rapidprompt_{time:YYYY-MM-DD}.log")
        logger.add(log_file_str, level="DEBUG", format=fmt_file,
                   rotation="1 day", retention="7 days", compression="zip",
                   enqueue=True, encoding="utf-8")
        logger.info(f"Logging initialized. Level: {log_level}. Log file: {log_file_str}")
    except OSError as e:
        logger.error(f"Could not configure file logging: {e}")
        logger.warning("File logging disabled.")
