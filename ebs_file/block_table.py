"""
Block table construction.

A BlockTable maps every allocated block index of one snapshot to the token
needed to fetch it. It is built once by walking all pages of the listing
and is read-only afterwards, so any number of threads may look blocks up
without locking.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from ebs_file.block_service import BlockService
from ebs_file.context import CallContext
from ebs_file.util import volume_size_bytes

LOG = logging.getLogger("ebs_file.block_table")


@dataclass(frozen=True)
class BlockTable:
    """
    Sparse index of one snapshot.

    Attributes:
        snapshot_id: Snapshot the table was built for.
        block_size: Block size in bytes, from the first listing page.
        volume_size: Volume size in bytes, from the last listing page.
        blocks: Read-only mapping of block index -> block token. An index
                that is absent was never written (sparse).
    """

    snapshot_id: str
    block_size: int
    volume_size: int
    blocks: Mapping[int, str]

    def __contains__(self, block_index: int) -> bool:
        return block_index in self.blocks

    def __len__(self) -> int:
        return len(self.blocks)

    def token(self, block_index: int) -> Optional[str]:
        """Token for block_index, or None if the block is sparse."""
        return self.blocks.get(block_index)


def build_block_table(
        service: BlockService,
        snapshot_id: str,
        context: Optional[CallContext] = None,
) -> BlockTable:
    """
    Walk every page of the snapshot's listing and build its BlockTable.

    Pages are followed with an explicit loop, so a heavily fragmented
    snapshot with many pages does not grow the stack.

    Any exception raised by a listing call propagates as-is. The blocks
    accumulated so far are dropped with the local state; a partial table is
    never returned.
    """
    blocks: dict[int, str] = {}

    listing = service.list_blocks(snapshot_id, None, context)
    block_size = listing.block_size
    pages = 1

    while True:
        for block in listing.blocks:
            blocks[block.index] = block.token

        LOG.debug(
            "snapshot %s page %d: %d blocks (total %d)",
            snapshot_id,
            pages,
            len(listing.blocks),
            len(blocks),
        )

        if listing.next_token is None:
            break

        listing = service.list_blocks(snapshot_id, listing.next_token, context)
        pages += 1

    table = BlockTable(
        snapshot_id=snapshot_id,
        block_size=block_size,
        volume_size=volume_size_bytes(listing.volume_size),
        blocks=MappingProxyType(blocks),
    )

    LOG.info(
        "built block table for %s: %d allocated blocks, block_size=%d, volume_size=%d, pages=%d",
        snapshot_id,
        len(table),
        table.block_size,
        table.volume_size,
        pages,
    )
    return table
