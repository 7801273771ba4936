"""Print the state of the local NeuroLearn store and optionally drain the sync queue.

Reads configuration from NEUROLEARN_* environment variables or a YAML
settings file with a ``storage:`` section.

Usage:
    python scripts/storage_status.py
    python scripts/storage_status.py --config ~/.neurolearn/settings.yaml --sync
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from neurolearn_storage import (
    StorageConfig,
    StorageError,
    configure_structured_logging,
    create_study_storage,
)

logger = logging.getLogger(__name__)


async def run(config: StorageConfig, sync: bool, show_dead_letters: bool) -> int:
    storage = create_study_storage(config)
    await storage.start(periodic=False)
    try:
        if sync:
            result = await storage.background_sync()
            print(f"Sync: {json.dumps(result.to_dict())}")

        info = await storage.get_storage_info()
        print("=" * 50)
        print("STORAGE STATUS")
        print("=" * 50)
        print(f"Online:             {info.is_online}")
        print(f"Cache entries:      {info.cache_entry_count}")
        print(f"Pending sync items: {info.pending_queue_length}")
        print(f"Dead letters:       {info.dead_letter_count}")
        print(f"Memory tier:        {json.dumps(storage.orchestrator.cache.stats())}")

        if show_dead_letters:
            for item in await storage.orchestrator.get_dead_letters():
                print(f"  {item.key}: {item.attempts} attempts, last error: {item.last_error}")
    finally:
        await storage.close()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Show NeuroLearn local storage status",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Status from environment configuration
    NEUROLEARN_REMOTE_URL="https://api.example.com/v1" python scripts/storage_status.py

    # Drain the sync queue once, then report
    python scripts/storage_status.py --config settings.yaml --sync
        """,
    )
    parser.add_argument("--config", type=Path, help="YAML settings file with a storage section")
    parser.add_argument("--sync", action="store_true", help="Run one background sync first")
    parser.add_argument(
        "--dead-letters", action="store_true", help="List writes dropped after max attempts"
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    args = parser.parse_args()

    if args.json_logs:
        configure_structured_logging(logging.INFO, logger_name=None)
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    try:
        config = StorageConfig.from_yaml(args.config) if args.config else StorageConfig.from_environment()
        exit_code = asyncio.run(run(config, args.sync, args.dead_letters))
    except StorageError as e:
        logger.error(f"{e.message} {e.details}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
