import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

_configured = False


def configure_logging(level: int | str = logging.WARNING, log_file: Optional[str] = None) -> None:
    """Install the process-wide handlers. Only the first call has any effect."""
    global _configured
    if _configured:
        return
    _configured = True

    logger = logging.getLogger()
    logger.setLevel(level)

    fmt = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s - %(message)s"
    )

    # Console
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    # Rotating file (the monitor runs unattended for months)
    if log_file:
        fh = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=5
        )
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    # Silence noisy httpx request logging
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "logging level set to %s", logging.getLevelName(logger.level)
    )
