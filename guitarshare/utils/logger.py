# guitarshare/utils/logger.py

import logging

# Handlers and formatting are attached by observability.logger.configure_logging
access_logger = logging.getLogger("access")
error_logger = logging.getLogger("error")
access_logger.setLevel(logging.INFO)
error_logger.setLevel(logging.ERROR)


def log_info(message, **fields):
    access_logger.info(message, extra=fields or None)


def log_exception(e: Exception, context: str = "", **fields):
    error_logger.error(
        f"Exception in {context}: {type(e).__name__}: {e}",
        exc_info=e,
        extra=fields or None,
    )
