import logging

from collection_accessor.core.config import settings

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else (level or settings.LOG_LEVEL),
        format=LOG_FORMAT,
    )

    # Silence noisy libraries
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("motor").setLevel(logging.WARNING)
