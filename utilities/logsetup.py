import logging
import sys

import config


def log_uncaught_exception(exc_type, exc_value, exc_tb):
    if exc_type == KeyboardInterrupt:
        # Ignore keyboard interrupts (e.g. when the process is shut down)
        pass
    else:
        logging.error("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))


def setup_logging(filename: str | None = None, level: str | None = None):
    # Set up logging to file
    logging.basicConfig(
        filename=filename or config.LOG_FILE,
        level=getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    # Set the custom exception hook
    sys.excepthook = log_uncaught_exception
