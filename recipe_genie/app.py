from __future__ import annotations

import logging
import sys

from recipe_genie.config import load_config
from recipe_genie.logging import configure_logging
from services.bot import run_bot

logger = logging.getLogger(__name__)


def main() -> None:
    config = load_config()
    configure_logging(config)
    try:
        run_bot(config)
    except Exception:
        logger.exception("Connection failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
