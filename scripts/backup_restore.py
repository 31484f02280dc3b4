from __future__ import annotations

import argparse
import asyncio
import sys

from mongodrop.core.config import get_settings
from mongodrop.core.errors import MongodropError
from mongodrop.core.logging import configure_logging
from mongodrop.services.coordinator import initialize


async def _run_restore(name: str) -> None:
    coordinator = initialize(get_settings())
    try:
        await coordinator.restore_backup(name)
    finally:
        await coordinator.aclose()


def main() -> None:
    # Restores drop existing collections, so require explicit confirmation.
    parser = argparse.ArgumentParser(description="Download an archive and restore it")
    parser.add_argument("--name", required=True, help="artifact name, e.g. backup_2024-01-01_00-00-00.gz")
    parser.add_argument("--yes", action="store_true", help="confirm the destructive restore")
    args = parser.parse_args()
    if not args.yes:
        print("refusing to restore without --yes (existing data is dropped)", file=sys.stderr)
        sys.exit(2)
    configure_logging()
    try:
        asyncio.run(_run_restore(args.name))
    except MongodropError as exc:
        print(f"error={exc}", file=sys.stderr)
        sys.exit(1)
    print(f"restored={args.name}")


if __name__ == "__main__":
    main()
