"""Root logging setup shared by tool servers."""
import logging
import sys

from wp_shared.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Configure root logging on stderr; stdout is left to protocol traffic."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO; the client has its own hooks
    logging.getLogger("httpx").setLevel(logging.WARNING)
