"""Test package for the polling client."""

import logging

logging.getLogger("asyncio").setLevel(logging.ERROR)
