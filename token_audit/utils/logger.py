import os
import sys

from loguru import logger


def setup_logger(*, json_logs: bool = False, level: str = "INFO", log_dir: str | None = "logs") -> None:
    """Configure loguru for audit runs.

    Console goes to stderr so stdout stays clean for JSON reports.
    Console level controlled by LOG_LEVEL env (default: INFO).
    File sink, when ``log_dir`` is set, always captures DEBUG.
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stderr, serialize=True, level=console_level)
    else:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
                "<level>{message}</level>"
            ),
            level=console_level,
            colorize=True,
        )

    if log_dir:
        logger.add(
            os.path.join(log_dir, "token_audit_{time:YYYY-MM-DD}.log"),
            rotation="20 MB",
            retention="3 days",
            compression="gz",
            level="DEBUG",
            serialize=json_logs,
        )
