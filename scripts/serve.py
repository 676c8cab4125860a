"""
Run the school portal backend with its own listening socket.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portal.config import DeploymentMode, get_settings
from portal.lifecycle import bootstrap

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="School portal backend")
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="Override PORT",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Override HOST",
    )
    args = parser.parse_args()

    settings = get_settings()
    overrides = {
        name: value
        for name, value in (("port", args.port), ("host", args.host))
        if value is not None
    }
    if overrides:
        settings = settings.model_copy(update=overrides)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if settings.mode is not DeploymentMode.LISTENING:
        logger.error(
            "Deployment mode is %s; the on-demand host imports api/index.py instead",
            settings.mode.value,
        )
        return 1

    bootstrap(settings).serve()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
