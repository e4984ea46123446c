import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "ice_ops"


def _configure_root():
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        root.setLevel(logging.INFO)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(ch)
    return root


def get_logger(name=ROOT_LOGGER, level=None):
    # Module loggers (ice_ops.*) carry no handler of their own; they inherit
    # the package logger's handler and level.
    _configure_root()
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(str(level).upper())
    return logger
