"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``. Security-relevant
events (bad payment signatures, forged webhooks) go to a dedicated logger
so they can be routed separately.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

security_logger = logging.getLogger("photoforge.security")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
