import logging
import sys


def setup_logging(service_name: str, level: str = "INFO") -> None:
    """Send every logger (uvicorn's included) to one stdout handler."""
    formatter = logging.Formatter(
        f"%(asctime)s - [%(levelname)s] - [{service_name}] - %(name)s - %(message)s"
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers = [handler]

    for name in ("uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False

    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
