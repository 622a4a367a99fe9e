from __future__ import annotations

import argparse
import logging
import sys

from bootstrap import run_bootstrap

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create tables and seed the superadmin account.")
    parser.add_argument(
        "--seed-only",
        action="store_true",
        help="Skip table creation and only seed the superadmin from SUPERADMIN_EMAIL/SUPERADMIN_PASSWORD.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logger.info("Running backend bootstrap%s...", " (seed only)" if args.seed_only else "")
    run_bootstrap(seed_only=args.seed_only)
    logger.info("Bootstrap completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
