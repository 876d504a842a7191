import logging
import sys

LOG_FORMAT = '[%(asctime)s][%(levelname)s][%(threadName)s][%(name)s]\t%(message)s'
LOG_NAME2LEVEL = {
    "TRACE": logging.DEBUG,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.FATAL,
}


def _stdout_handler(level):
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    return handler


def init_logger(level_str: str = "INFO") -> logging.Logger:
    """Configura el logger raíz con un único handler a stdout."""
    root_logger = logging.getLogger()

    # Quitar handlers previos (streamlit y otros hosts añaden los suyos)
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)

    level = LOG_NAME2LEVEL.get(level_str.upper(), logging.INFO)
    root_logger.addHandler(_stdout_handler(level))
    root_logger.setLevel(level)

    root_logger.info(f"LOG_LEVEL set to {logging.getLevelName(level)}")
    return root_logger


def setup_logger(name: str) -> logging.Logger:
    """
    Cada módulo llama:
        logger = setup_logger(__name__)
    El logger propaga al raíz configurado por init_logger. Sin init_logger
    (uso como librería) no se toca el logging del proceso anfitrión.
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    return logger
