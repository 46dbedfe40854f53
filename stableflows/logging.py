import logging
import os
import structlog
import sys
from pathlib import Path
from dotenv import load_dotenv

SERVICE = "stableflows"

# Floors for chatty libraries; None follows LOG_LEVEL.
LIBRARY_LEVELS = {
    "httpx": logging.WARNING,  # one INFO line per request
    "httpcore": logging.WARNING,
    "matplotlib": logging.WARNING,
    "apscheduler": None,
    "uvicorn": None,
    "uvicorn.error": None,
    "uvicorn.access": None,
}

def add_service(_logger, _method, event_dict):
    event_dict.setdefault("service", SERVICE)
    return event_dict

def setup_logging(level: str | None = None):
    """JSON logs to stdout, errors also to LOG_ERROR_FILE when set."""
    load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    error_log_path = os.getenv("LOG_ERROR_FILE", "").strip()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    formatter = logging.Formatter("%(message)s")

    stdout = logging.StreamHandler(sys.stdout)
    stdout.setLevel(log_level)
    stdout.setFormatter(formatter)
    root.addHandler(stdout)

    if error_log_path:
        Path(error_log_path).parent.mkdir(parents=True, exist_ok=True)
        errors = logging.FileHandler(error_log_path)
        errors.setLevel(logging.ERROR)
        errors.setFormatter(formatter)
        root.addHandler(errors)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            add_service,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
    )
    for name, floor in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(log_level if floor is None else max(log_level, floor))
