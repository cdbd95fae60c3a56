import logging
from pathlib import Path


def get_library_logger() -> logging.Logger:
    """Return the root logger for the ``crnch`` package."""
    return logging.getLogger("crnch")


def configure_logging(log_file: Path, level: int = logging.INFO) -> None:
    """Configure Python logging to write to ``log_file``."""
    log_file = Path(log_file)
    if not log_file.parent.exists():
        log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(log_file))
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logger = get_library_logger()
    logger.setLevel(level)
    logger.addHandler(handler)


__all__ = ["configure_logging", "get_library_logger"]
