"""
Random-access, read-only byte view of one EBS snapshot.

This module maps byte offsets onto snapshot blocks:

- SnapshotFile.read_at() resolves the block that owns an offset, serves
  sparse blocks as zeros, and otherwise returns data from the cache or
  from the BlockService.
- SectionReader bounds a SnapshotFile to [0, size) and adds a cursor, so
  the snapshot can be handed to anything that expects a seekable binary
  file object.
- open_snapshot() builds the block table and wires both together.
"""

import io
import logging
from typing import Optional

from ebs_file.block_service import BlockService
from ebs_file.block_table import BlockTable, build_block_table
from ebs_file.cache import Cache, NullCache
from ebs_file.context import CallContext
from ebs_file.errors import BlockSizeMismatchError
from ebs_file.util import (
    block_index_from_offset,
    block_offset_inside_block,
    cache_key,
)

LOG = logging.getLogger("ebs_file.snapshot_file")


class SnapshotFile:
    """
    Block-translating reader over one snapshot.

    Each read_at() call touches exactly one block and returns at most up to
    the end of that block. Use SectionReader for reads spanning blocks.

    read_at() may be called from several threads at once. The block table
    is immutable and no lock is taken; the supplied cache is assumed to
    tolerate concurrent get()/add(). The cache and the service are shared
    references, owned by the caller.
    """

    def __init__(
            self,
            table: BlockTable,
            service: BlockService,
            cache: Optional[Cache] = None,
            context: Optional[CallContext] = None,
    ) -> None:
        """
        Args:
            table: Block table of the snapshot.
            service: Service used to fetch allocated blocks.
            cache: Block cache. None disables caching.
            context: Context passed to every fetch. None means no deadline
                     and no cancellation.
        """
        self.table = table
        self.service = service
        self.cache = cache if cache is not None else NullCache()
        self.context = context

    @property
    def snapshot_id(self) -> str:
        return self.table.snapshot_id

    @property
    def block_size(self) -> int:
        return self.table.block_size

    def size(self) -> int:
        """
        Return the volume size in bytes.
        """
        return self.table.volume_size

    def read_at(self, buf, offset: int) -> int:
        """
        Read into `buf` starting at absolute byte `offset`.

        Copies min(len(buf), block_size - offset % block_size) bytes and
        returns that count. For a sparse block the same span of `buf` is
        explicitly zeroed, and neither the cache nor the service is used.

        Bounds against the volume size are not checked here; SectionReader
        does that.

        Raises:
            BlockSizeMismatchError: the fetched or cached block does not
                                    have block_size bytes.
            Any error raised by the service's get_block(), unchanged.
        """
        view = memoryview(buf).cast("B")

        block_index = block_index_from_offset(offset, self.block_size)
        block_offset = block_offset_inside_block(offset, self.block_size)
        count = min(len(view), self.block_size - block_offset)

        token = self.table.token(block_index)
        if token is None:
            # Never written → zero-filled block
            view[:count] = bytes(count)
            return count

        block = self._read_block(block_index, token)
        view[:count] = block[block_offset:block_offset + count]
        return count

    def _read_block(self, block_index: int, token: str) -> bytes:
        """
        Return the full content of one allocated block.
        """
        key = cache_key(self.snapshot_id, block_index)

        block, found = self.cache.get(key)
        if found:
            if len(block) != self.block_size:
                raise BlockSizeMismatchError(block_index, self.block_size, len(block))
            return block

        LOG.debug("cache miss snapshot=%s block=%d", self.snapshot_id, block_index)

        block = self.service.get_block(self.snapshot_id, block_index, token, self.context)
        if len(block) != self.block_size:
            raise BlockSizeMismatchError(block_index, self.block_size, len(block))

        if not self.cache.add(key, block):
            LOG.debug("cache refused snapshot=%s block=%d", self.snapshot_id, block_index)

        return block


class SectionReader(io.RawIOBase):
    """
    Seekable, read-only file object over [offset, offset + size) of a
    reader that implements read_at().

    Positions are relative to the start of the section. Reading at or past
    the end of the section returns no data; it is not an error.

    read_at() is safe to call concurrently. read(), readinto() and seek()
    share one cursor and are not.
    """

    def __init__(self, reader, offset: int, size: int) -> None:
        """
        Args:
            reader: Object with read_at(buf, offset) -> int.
            offset: Absolute offset where the section starts.
            size: Length of the section in bytes.
        """
        super().__init__()
        if offset < 0 or size < 0:
            raise ValueError(f"invalid section offset={offset} size={size}")

        self._reader = reader
        self._base = offset
        self._size = size
        self._position = 0

    def size(self) -> int:
        return self._size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def read_at(self, buf, offset: int) -> int:
        """
        Fill `buf` with data from section position `offset`.

        The read is clamped to the section, so fewer than len(buf) bytes
        are returned only when the section ends first. Returns 0 at or past
        the end of the section.
        """
        if offset < 0:
            raise ValueError(f"negative offset: {offset}")
        if offset >= self._size:
            return 0

        view = memoryview(buf).cast("B")
        want = min(len(view), self._size - offset)

        done = 0
        while done < want:
            n = self._reader.read_at(view[done:want], self._base + offset + done)
            if n <= 0:
                break
            done += n
        return done

    def readinto(self, b) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file")

        n = self.read_at(b, self._position)
        self._position += n
        return n

    def seek(self, offset: int, whence: int = io.SEEK_SET, /) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file")

        if whence == io.SEEK_SET:
            position = offset
        elif whence == io.SEEK_CUR:
            position = self._position + offset
        elif whence == io.SEEK_END:
            position = self._size + offset
        else:
            raise ValueError(f"Invalid whence value: {whence}")

        if position < 0:
            raise ValueError(f"negative seek position: {position}")

        self._position = position
        return self._position

    def tell(self) -> int:
        return self._position


def open_snapshot(
        snapshot_id: str,
        service: BlockService,
        cache: Optional[Cache] = None,
        context: Optional[CallContext] = None,
) -> SectionReader:
    """
    Open a snapshot as a seekable, read-only binary file object.

    Walks the snapshot's full block listing first. If any listing call
    fails, the error propagates and nothing is opened.

    Args:
        snapshot_id: Snapshot to open.
        service: Block service used for the listing and for block fetches.
                 Owned by the caller.
        cache: Optional block cache, possibly shared with other readers.
               Defaults to a cache that stores nothing.
        context: Call context for the listing and for every later fetch.

    Returns:
        A SectionReader spanning the whole volume.
    """
    table = build_block_table(service, snapshot_id, context)
    f = SnapshotFile(table, service, cache=cache, context=context)
    return SectionReader(f, 0, f.size())
