from gc_timeline import trace as trace, utils as utils
import logging


def init_logging(level=logging.INFO):
    """
    Configure the "gc_timeline" logger to emit records at `level` and above.

    Attaches a StreamHandler the first time it is called; later calls only
    change the level. Records do not propagate to the root logger.
    """
    logger = logging.getLogger("gc_timeline")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
