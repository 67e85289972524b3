"""Application logging: rotating file plus console, tagged with request context."""
import logging
import os
from logging.handlers import RotatingFileHandler

from flask import has_request_context, request

_HANDLER_MARK = "_terraurb_handler"


class RequestContextFilter(logging.Filter):
    """Attach the client address and route to every record emitted during a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.remote_addr = request.headers.get("X-Forwarded-For", request.remote_addr or "-").split(",")[0].strip()
            record.route = f"{request.method} {request.path}"
        else:
            record.remote_addr = "-"
            record.route = "-"
        return True


def _build_handlers(log_path: str | None, level: int, formatter: logging.Formatter) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if log_path:
        file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
        handlers.append(file_handler)
    handlers.append(logging.StreamHandler())

    context_filter = RequestContextFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        setattr(handler, _HANDLER_MARK, True)
    return handlers


def init_logging(app) -> logging.Logger:
    level_name = (app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    # Tests build many apps per process; keep their output on the console only.
    log_path = None
    if not app.config.get("TESTING"):
        log_dir = app.config.get("LOG_DIR") or os.path.join(app.instance_path, "logs")
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, "terraurb.log")

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | %(remote_addr)s | %(route)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    logger = logging.getLogger(app.name)
    logger.setLevel(level)
    for handler in [h for h in logger.handlers if getattr(h, _HANDLER_MARK, False)]:
        logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(log_path, level, formatter):
        logger.addHandler(handler)
    logger.propagate = False

    # Flask's logger and the scheduler's logger share the same sinks.
    app.logger.handlers = logger.handlers
    app.logger.setLevel(level)
    logging.getLogger("apscheduler").handlers = logger.handlers

    logger.info("Logging initialized", extra={"log_path": log_path or "stream-only"})
    return logger
