"""Process-wide logging setup."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    """Install a stream handler on the root logger at the requested level."""

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("po_dashboard").setLevel(level.upper())
