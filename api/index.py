"""
Serverless entry point.

The host looks for a callable named `app` or `handler` in api/index.py. Both
come from the same deployment, built in exported mode.
"""

import logging
import os
import sys

# Make the project root importable when the host runs this file directly
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("DEPLOYMENT_MODE", "exported")

from portal.config import get_settings  # noqa: E402
from portal.lifecycle import bootstrap  # noqa: E402

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(name)s %(levelname)s %(asctime)s %(message)s",
)

deployment = bootstrap()
app = deployment.app
handler = deployment.handler

__all__ = ["app", "handler"]
