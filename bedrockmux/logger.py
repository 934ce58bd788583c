import logging
from typing import Union

from rich.logging import RichHandler

LOGGER_NAME = "bedrockmux"


def setup_logging(level: Union[int, str] = logging.INFO, rich: bool = True) -> logging.Logger:
    """
    Attach a handler to the package logger.

    Calling this more than once replaces the previous handler instead of
    stacking duplicates.

    Args:
        level: Logging level for the package logger (e.g. "DEBUG").
        rich (bool): Use rich's console handler; a plain StreamHandler otherwise.

    Returns:
        logging.Logger: The configured "bedrockmux" logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_bedrockmux_handler", False):
            logger.removeHandler(handler)

    if rich:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    handler._bedrockmux_handler = True
    logger.addHandler(handler)
    return logger
