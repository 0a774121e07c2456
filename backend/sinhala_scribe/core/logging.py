import json
import logging
import os
import sys
from typing import Any, Dict, Optional

from loguru import logger

from sinhala_scribe.core.config import settings


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """
    Intercept standard logging messages toward loguru

    This handler intercepts all log records sent by the standard logging
    module and redirects them to loguru.
    """

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class JSONFormatter:
    """
    JSON formatter for loguru records

    Formats log records as JSON objects for structured logging.
    """

    def __call__(self, record: Dict[str, Any]) -> str:
        log_record = {
            "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record["level"].name,
            "message": record["message"],
            "module": record["name"],
            "function": record["function"],
            "line": record["line"],
            "process_id": record["process"].id,
        }

        if record["exception"]:
            log_record["exception"] = {
                "type": record["exception"].type.__name__,
                "value": str(record["exception"].value),
            }

        if record["extra"]:
            log_record.update(record["extra"])

        # loguru treats the returned string as a format template
        return json.dumps(log_record, default=str).replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging(console_only: bool = False, level: Optional[str] = None) -> None:
    """
    Set up logging configuration

    Configures loguru with a console sink and, for the service, rotating file
    sinks. The CLI passes ``console_only`` so it never writes log files into
    the user's working directory.
    """
    logger.remove()

    log_level = level or ("DEBUG" if settings.DEBUG else "INFO")

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=log_level,
        diagnose=settings.DEBUG,
        backtrace=True,
    )

    if not console_only and settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)

        # Error log for every environment
        logger.add(
            os.path.join(settings.LOG_DIR, f"{settings.ENVIRONMENT}_error.log"),
            format=JSONFormatter() if settings.is_production else CONSOLE_FORMAT,
            level="ERROR",
            rotation="10 MB",
            retention="30 days",
            compression="zip",
            backtrace=True,
            enqueue=True,
        )

        if settings.ENVIRONMENT in ["production", "staging"]:
            logger.add(
                os.path.join(settings.LOG_DIR, f"{settings.ENVIRONMENT}_all.log"),
                format=JSONFormatter(),
                level=log_level,
                rotation="50 MB",
                retention="7 days",
                compression="zip",
                enqueue=True,
            )

    # Intercept standard logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for logger_name in ["uvicorn", "uvicorn.error", "fastapi", "sqlalchemy.engine", "httpx"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]

    logger.debug(f"Logging configured for {settings.ENVIRONMENT} environment at {log_level} level")
