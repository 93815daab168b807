import logging

from src.config import settings
from src.middleware.request_id import RequestIdLogFilter

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [req=%(request_id)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once per process."""
    root = logging.getLogger()
    if any(isinstance(f, RequestIdLogFilter) for h in root.handlers for f in h.filters):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdLogFilter())
    root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())

    # SQL echo is controlled by the engine; keep the sqlalchemy logger quieter
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
