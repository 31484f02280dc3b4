from __future__ import annotations

import argparse
import asyncio
import json
import sys

from mongodrop.core.config import get_settings
from mongodrop.core.errors import MongodropError
from mongodrop.core.logging import configure_logging
from mongodrop.services.backup import BackupArtifact
from mongodrop.services.coordinator import initialize


async def _list_backups() -> list[BackupArtifact]:
    coordinator = initialize(get_settings())
    try:
        return await coordinator.list_backups()
    finally:
        await coordinator.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="List archives in the remote store")
    parser.parse_args()
    configure_logging()
    try:
        artifacts = asyncio.run(_list_backups())
    except MongodropError as exc:
        print(f"error={exc}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps([artifact.to_dict() for artifact in artifacts], indent=2))


if __name__ == "__main__":
    main()
