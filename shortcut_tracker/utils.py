import os
import sys
import logging
import tempfile
from pathlib import Path

# ---------------------------------------------------------------------------
# Logger setup
# ---------------------------------------------------------------------------
logger = logging.getLogger("shortcut_tracker")
if not logger.hasHandlers():
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        "[%(levelname)s] %(asctime)s - %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------
def die(msg: str):
    """
    Log a critical error and exit the program.

    Parameters
    ----------
    msg : str
        Error message to log.
    """
    logger.critical(msg)
    raise SystemExit(msg)


def info(msg: str):
    """
    Log an informational message.

    Parameters
    ----------
    msg : str
        Message to log.
    """
    logger.info(msg)


def warn(msg: str):
    """
    Log a warning message.

    Parameters
    ----------
    msg : str
        Message to log.
    """
    logger.warning(msg)


# ---------------------------------------------------------------------------
# Atomic file replacement
# ---------------------------------------------------------------------------
def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Write `data` to `path` so readers only ever see the old or the new file.

    The payload goes to a temp file in the same directory, is fsync'd, and
    then replaces the target with os.replace(). On any failure the temp file
    is removed and the exception propagates; the existing file is untouched.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
