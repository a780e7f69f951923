"""Main module entrypoint for single-shot sync commands.

This module validates startup configuration, runs one command for one
account, and exits. Scheduling repeated runs belongs to the caller.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from panoptic_core.bootstrap import (
    SyncRuntime,
    bootstrap_close_runtime,
    bootstrap_create_runtime,
    bootstrap_create_scope,
)
from panoptic_core.sync import SyncProgressEvent

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the selected command with validated startup configuration.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with status 1 when the command fails.
    """

    argument_parser = argparse.ArgumentParser(description="Panoptic position sync entrypoint")
    argument_parser.add_argument(
        "command",
        choices=("sync", "status", "sweep-pending"),
        help="`sync` scans to the head, `status` prints checkpoint lag, "
        "`sweep-pending` removes stale pending records",
        type=str,
    )
    argument_parser.add_argument("--account", dest="account", required=True, type=str, help="Account address")
    argument_parser.add_argument(
        "--to-block",
        dest="to_block",
        type=int,
        help="Optional last block for `sync`",
    )
    argument_parser.add_argument(
        "--log-level",
        dest="log_level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        type=str,
    )
    parsed_arguments = argument_parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, parsed_arguments.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    runtime = bootstrap_create_runtime()
    exit_code = asyncio.run(main_run_command(runtime, parsed_arguments))
    if exit_code != 0:
        raise SystemExit(exit_code)


async def main_run_command(runtime: SyncRuntime, parsed_arguments: argparse.Namespace) -> int:
    """Execute one command and release runtime resources.

    Returns:
        int: Process exit code.
    """

    scope = bootstrap_create_scope(runtime.settings, parsed_arguments.account)
    try:
        if parsed_arguments.command == "sync":
            summary = await runtime.orchestrator.sync_run(
                scope,
                to_block=parsed_arguments.to_block,
                on_progress=main_log_progress,
            )
            print(
                f"synced to block {summary.to_block}: scanned={summary.blocks_scanned} "
                f"added={summary.positions_added} removed={summary.positions_removed} "
                f"reorg={summary.reorg_detected}"
            )
            return 0

        if parsed_arguments.command == "status":
            status = await runtime.orchestrator.sync_get_status(scope)
            print(
                f"last_synced_block={status.last_synced_block} head_block={status.head_block} "
                f"blocks_behind={status.blocks_behind} positions={status.position_count} "
                f"is_synced={status.is_synced}"
            )
            return 0

        removed = await runtime.pending_service.pending_sweep_stale(scope)
        print(f"removed {len(removed)} stale pending records")
        return 0
    except (ConnectionError, TimeoutError, RuntimeError) as error:
        logger.error("command %s failed: %s", parsed_arguments.command, error)
        return 1
    finally:
        await bootstrap_close_runtime(runtime)


def main_log_progress(progress: SyncProgressEvent) -> None:
    """Log one applied sync window."""

    logger.info(
        "window %s-%s added=%s removed=%s",
        progress.scanned_from_block,
        progress.scanned_to_block,
        progress.positions_added,
        progress.positions_removed,
    )


if __name__ == "__main__":
    main()
