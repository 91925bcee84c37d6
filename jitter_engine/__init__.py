"""Jitter engine: personalized caffeine crash-risk and CaffScore scoring."""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
