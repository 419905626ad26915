import logging
from pythonjsonlogger import jsonlogger

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


class _AipFrontHandler(logging.StreamHandler):
    """Marks the handler we install, so that it is only installed once."""


def setup_logger(level: str = 'INFO', json: bool = True) -> logging.Logger:
    """Send log records to stderr, as JSON lines unless ``json`` is off."""
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if isinstance(handler, _AipFrontHandler):
            logger.removeHandler(handler)

    logHandler = _AipFrontHandler()
    if json:
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            LOG_FORMAT,
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(LOG_FORMAT)
    logHandler.setFormatter(formatter)
    logger.addHandler(logHandler)
    logger.setLevel(level)
    return logger
