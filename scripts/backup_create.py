from __future__ import annotations

import argparse
import asyncio
import sys

from mongodrop.core.config import get_settings
from mongodrop.core.errors import MongodropError
from mongodrop.core.logging import configure_logging
from mongodrop.services.coordinator import initialize


async def _run_backup() -> str:
    # Execute one dump + upload from the CLI for operator workflows.
    coordinator = initialize(get_settings())
    try:
        return await coordinator.create_backup()
    finally:
        await coordinator.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Dump the database and upload the archive")
    parser.parse_args()
    configure_logging()
    try:
        name = asyncio.run(_run_backup())
    except MongodropError as exc:
        print(f"error={exc}", file=sys.stderr)
        sys.exit(1)
    print(f"backup_name={name}")


if __name__ == "__main__":
    main()
