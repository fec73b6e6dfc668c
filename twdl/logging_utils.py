import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Send log records to stderr so stdout stays free for clip URLs."""
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel(lvl)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(lvl, logging.INFO))
