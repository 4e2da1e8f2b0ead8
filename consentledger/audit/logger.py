import sys
from loguru import logger

from consentledger.settings import get_settings


def configure_logging():
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, backtrace=True, diagnose=False, serialize=settings.log_json)
    return logger
