"""Simple logger utility."""
import logging

from ..app.config import Config

logger = logging.getLogger("cakeraft")
if not logger.handlers:
    h = logging.StreamHandler()
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    h.setFormatter(fmt)
    logger.addHandler(h)
    logger.setLevel(getattr(logging, Config.LOG_LEVEL, logging.INFO))

def get_logger(name: str = None):
    if name:
        return logger.getChild(name)
    return logger
