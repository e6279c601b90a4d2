"""JSON log output for services that use the session store."""

import logging
from pythonjsonlogger import jsonlogger


def setup_logger(level: int = logging.INFO) -> None:
    """Install a JSON formatter on the root logger."""
    logger = logging.getLogger()
    for handler in logger.handlers:
        if isinstance(handler.formatter, jsonlogger.JsonFormatter):
            logger.setLevel(level)
            return
    logHandler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                         rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
    logHandler.setFormatter(formatter)
    logger.addHandler(logHandler)
    logger.setLevel(level)


def session_debug() -> None:
    """Sets the session store loggers to DEBUG."""
    logging.getLogger('kvsession').setLevel(logging.DEBUG)
