import logging
import sys

from payu_bridge.utils.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    # force=True so uvicorn's earlier handler setup does not swallow our format.
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stdout, force=True)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
