import sys

from loguru import logger

from .config import settings

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<blue>correlation_id={extra[correlation_id]}</blue> | <level>{message}</level>"
)


def setup_logging():
    """Configure loguru: a single stdout sink, request context in every line."""
    logger.remove()
    logger.configure(extra={"correlation_id": "-"})
    logger.add(
        sys.stdout,
        format=_FORMAT,
        level=settings.LOG_LEVEL,
        serialize=settings.LOG_JSON,
        colorize=not settings.LOG_JSON,
        backtrace=False,
        diagnose=False,
    )
