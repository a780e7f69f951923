"""Ancestry bookkeeping and common-ancestor search for reorg recovery."""

from __future__ import annotations

import logging
from typing import Iterable

from panoptic_core.adapters import LedgerBlockNotFoundError, LedgerClientPort
from panoptic_core.db import BlockReference

logger = logging.getLogger(__name__)


def reorg_extend_ancestry(
    ancestry: Iterable[BlockReference],
    latest: BlockReference,
    reorg_depth: int,
) -> tuple[BlockReference, ...]:
    """Append a committed window end and prune references outside the safety depth.

    References at or above `latest.number - reorg_depth` are kept. The newest
    reference below that cutoff is kept as well, so a reorg shallower than the
    safety depth always leaves one canonical ancestor to find.

    Args:
        ancestry: Existing references, oldest first.
        latest: Newly committed window end.
        reorg_depth: Safety depth.

    Returns:
        tuple[BlockReference, ...]: Pruned references, oldest first.

    Raises:
        ValueError: Raised when reorg_depth is negative.
    """

    if reorg_depth < 0:
        raise ValueError("reorg_depth must be >= 0")

    references = [reference for reference in ancestry if reference.number < latest.number]
    references.append(latest)
    cutoff = latest.number - reorg_depth
    kept = [reference for reference in references if reference.number >= cutoff]
    older = [reference for reference in references if reference.number < cutoff]
    if older:
        kept.insert(0, older[-1])
    return tuple(kept)


def reorg_finality_horizon(ancestry: tuple[BlockReference, ...], reorg_depth: int) -> int:
    """Return the highest block whose events no recovery can ever roll back.

    Recovery never rewinds below `oldest ancestry block - reorg_depth`, so
    everything under that block is final. Returns `-1` for empty ancestry.
    """

    if not ancestry:
        return -1
    return ancestry[0].number - reorg_depth - 1


def reorg_rollback_block(ancestor_number: int, reorg_depth: int, deployment_block: int) -> int:
    """Return the first block to rescan after recovering at `ancestor_number`."""

    return max(ancestor_number - reorg_depth, deployment_block)


async def reorg_find_common_ancestor(
    ledger_client: LedgerClientPort,
    ancestry: tuple[BlockReference, ...],
) -> BlockReference | None:
    """Find the newest recorded block that is still canonical.

    Args:
        ledger_client: Ledger used to read canonical block hashes.
        ancestry: Recorded references, oldest first.

    Returns:
        BlockReference | None: Newest matching reference, or `None` when no
        recorded block is canonical anymore.

    Raises:
        ConnectionError: Raised when the ledger cannot be reached.
        TimeoutError: Raised when the ledger times out.
    """

    for reference in reversed(ancestry):
        try:
            canonical_block = await ledger_client.ledger_get_block(reference.number)
        except LedgerBlockNotFoundError:
            logger.debug("ancestry block %s no longer exists", reference.number)
            continue
        if canonical_block.hash == reference.hash:
            return reference
        logger.debug(
            "ancestry block %s hash mismatch recorded=%s canonical=%s",
            reference.number,
            reference.hash,
            canonical_block.hash,
        )
    return None
