import logging
import sys


def setup_logging(level="INFO"):
    """Configure the root logger once, early at start-up."""
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)

    # psycopg_pool logs every connection checkout at DEBUG
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
