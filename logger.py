# logger.py
import logging
import sys

LOG_FILE = "/var/log/pve_readdress.log"
FALLBACK_LOG_FILE = "/tmp/pve_readdress.log"

_fmt = logging.Formatter(
    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("pve_readdress")
    logger.setLevel(logging.DEBUG)

    # Try to write to log file; fall back to /tmp if /var/log not writable
    try:
        fh = logging.FileHandler(LOG_FILE)
    except PermissionError:
        fh = logging.FileHandler(FALLBACK_LOG_FILE)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(_fmt)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(logging.WARNING)
    sh.setFormatter(_fmt)

    if not logger.handlers:
        logger.addHandler(fh)
        logger.addHandler(sh)
    return logger


def set_console_level(level: int) -> None:
    """Change the threshold of the stderr handler (plain mode shows INFO)."""
    for h in log.handlers:
        if type(h) is logging.StreamHandler:
            h.setLevel(level)


log = setup_logger()
