from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from ebs_file.context import CallContext


@dataclass(frozen=True)
class Block:
    """One allocated block: its index and the opaque token needed to fetch it."""

    index: int
    token: str


@dataclass(frozen=True)
class BlockListing:
    """
    One page of a snapshot's block listing.

    volume_size is reported in GiB, exactly as the EBS direct API reports it.
    next_token is None on the last page.
    """

    blocks: Sequence[Block]
    block_size: int
    volume_size: int
    next_token: Optional[str] = None


class BlockService(ABC):
    """
    Abstract remote block service interface.

    A BlockService lists the allocated blocks of a snapshot, one page at a
    time, and fetches the content of a single block by index and token.
    Implementations may talk to the EBS direct APIs or read a local file.

    Blocks that were never written do not appear in the listing and are
    never fetched; the reader treats them as zero-filled.

    Every call receives the caller's CallContext and must call
    context.check() before doing any outbound work.
    """

    @abstractmethod
    def list_blocks(
            self,
            snapshot_id: str,
            next_token: Optional[str] = None,
            context: Optional[CallContext] = None,
    ) -> BlockListing:
        """
        Return one page of the snapshot's allocated blocks.

        The first call passes next_token=None. The caller keeps calling with
        the returned next_token until a page carries next_token=None:

            listing = service.list_blocks(snapshot_id)
            while listing.next_token is not None:
                listing = service.list_blocks(snapshot_id, listing.next_token)

        Args:
            snapshot_id: Snapshot to list.
            next_token: Continuation cursor from the previous page.
            context: Call context; None means no deadline, no cancellation.

        Returns:
            A BlockListing page.
        """
        raise NotImplementedError

    @abstractmethod
    def get_block(
            self,
            snapshot_id: str,
            block_index: int,
            block_token: str,
            context: Optional[CallContext] = None,
    ) -> bytes:
        """
        Fetch the content of exactly one block.

        Implementations return whatever the remote side returned; they do
        not pad or truncate. The reader checks the length against the
        snapshot's block size.

        Args:
            snapshot_id: Snapshot the block belongs to.
            block_index: Block index, offset // block_size.
            block_token: Token from the listing for this block.
            context: Call context; None means no deadline, no cancellation.

        Returns:
            The block's bytes, expected to be block_size long.
        """
        raise NotImplementedError

    def close(self) -> None:
        """
        Release connections or file handles held by the service.
        """
