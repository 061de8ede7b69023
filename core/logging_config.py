import logging
import logging.handlers
import sys
from pathlib import Path
from pythonjsonlogger import jsonlogger
from middleware.request_id import RequestIDFilter


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for the file handlers. Adds level, logger, call site and
    request id to every entry.
    """
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        log_record['timestamp'] = record.created
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno
        log_record['request_id'] = getattr(record, "request_id", "-")


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application-wide logging.

    Console gets a readable line format at `log_level`; logs/app.log gets
    everything as JSON and logs/error.log only ERROR and above.

    Args:
        log_level: Minimum console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory where log files will be stored
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    json_formatter = CustomJsonFormatter('%(timestamp)s %(level)s %(logger)s %(message)s')
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(console_formatter)

    handlers = [
        console_handler,
        _rotating_handler(log_path / "app.log", logging.DEBUG, json_formatter),
        _rotating_handler(log_path / "error.log", logging.ERROR, json_formatter),
    ]

    request_id_filter = RequestIDFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    # setup_logging may run more than once (tests, reloads)
    root_logger.handlers.clear()

    for handler in handlers:
        handler.addFilter(request_id_filter)
        root_logger.addHandler(handler)

    # Silence noisy third-party loggers
    for noisy in ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy.engine",
                  "passlib", "passlib.handlers.bcrypt", "multipart", "python_multipart.multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={
            "log_level": log_level,
            "log_dir": str(log_path.absolute())
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
