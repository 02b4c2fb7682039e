"""Process-wide logging setup."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Dedicated logger for authorization decisions and audit trail side effects
AUDIT_LOGGER_NAME = "trustee_portal.audit"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure stdlib logging once for the whole process.

    Args:
        level: Log level name from settings (DEBUG, INFO, WARNING, ...)
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger(AUDIT_LOGGER_NAME).setLevel(level.upper())


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER_NAME)
