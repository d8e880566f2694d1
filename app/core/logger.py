import logging
import sys

def setup_logging():
    """
    Configure the application logger. Handlers are attached only once so
    reloading the module under uvicorn does not duplicate output.
    """
    logger = logging.getLogger("scoliocare")
    logger.setLevel(logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)

    if not logger.handlers:
        logger.addHandler(handler)

    return logger

logger = setup_logging()
