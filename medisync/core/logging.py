import logging
import sys
import structlog
from pythonjsonlogger import jsonlogger

def setup_logging(level: str = "INFO", json_logs: bool = False):
    """Structured logging setup"""

    json_formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s"
    )

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Root logger; guard against stacking handlers when the app is built more than once
    logger = logging.getLogger()
    if not any(getattr(h, "_medisync", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(json_formatter)
        handler._medisync = True
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    return structlog.get_logger()
