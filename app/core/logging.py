import logging
import sys

from loguru import logger

_PROPAGATED_LOGGERS = ('uvicorn', 'uvicorn.error', 'uvicorn.access', 'sqlalchemy.engine', 'httpx')


class _InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str, *, serialize: bool = False) -> None:
    logger.remove()
    logger.add(
        sys.stdout,
        level=level,
        enqueue=True,
        backtrace=True,
        diagnose=False,
        serialize=serialize,
    )
    logging.root.handlers = [_InterceptHandler()]
    logging.root.setLevel(level)
    # uvicorn installs its own handlers; route them through the root instead.
    for name in _PROPAGATED_LOGGERS:
        named = logging.getLogger(name)
        named.handlers = []
        named.propagate = True
