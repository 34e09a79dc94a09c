"""Process-wide logging configuration."""
import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """
    Single stdout handler on the root logger:
    - root level set from config
    - existing handlers removed so reloads don't double-log
    - chatty third-party loggers quietened
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(
        logging.INFO if level.upper() == "DEBUG" else logging.WARNING
    )
