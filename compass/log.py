import logging
import os


def get_logger(name: str) -> logging.Logger:
    """Return a `compass.*` logger that emits bare JSON lines.

    - honor LOG_LEVEL env (default INFO)
    - attach a StreamHandler if none present
    - disable propagate to avoid duplicate logs with Uvicorn root handlers
    """
    logger = logging.getLogger(name)
    lvl = getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO)
    if not isinstance(lvl, int):
        lvl = logging.INFO
    logger.setLevel(lvl)
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setLevel(lvl)
        h.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(h)
    logger.propagate = False
    return logger
