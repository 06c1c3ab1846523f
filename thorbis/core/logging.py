import logging

from thorbis.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

analytics_logger = logging.getLogger("thorbis.analytics")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)


def log_event(action: str, **fields) -> None:
    """Emit one analytics record; fields travel as structured ``extra`` data."""
    analytics_logger.info(action, extra={"action": action, "event": fields})
