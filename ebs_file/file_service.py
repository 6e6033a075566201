import logging
import os
from typing import Optional

from ebs_file.block_service import Block, BlockListing, BlockService
from ebs_file.context import CallContext
from ebs_file.util import BLOCK_SIZE, GIB_SHIFT, volume_size_bytes

LOG = logging.getLogger("ebs_file.file_service")


class FileBlockService(BlockService):
    """
    Local flat-file backed block service.

    The backing file is treated as the raw image of one snapshot:

        block <i> = bytes [i * block_size, (i + 1) * block_size)

    Every block inside the volume is listed as allocated with an empty
    token, so there are no sparse blocks. The snapshot id passed to the
    service calls is ignored.

    This exists to exercise the reader without the EBS direct APIs; it
    never runs on the production path.
    """

    def __init__(
            self,
            path: str,
            block_size: int = BLOCK_SIZE,
            volume_size: Optional[int] = None,
            max_results: Optional[int] = None,
    ) -> None:
        """
        Args:
            path: Path of the flat image file.
            block_size: Size of every block in bytes.
            volume_size: Volume size in GiB. Defaults to the file size,
                         which must then be a whole number of GiB.
            max_results: Blocks per listing page. None lists everything
                         in a single page.
        """
        if max_results is not None and max_results <= 0:
            raise ValueError(f"max_results must be positive; got {max_results}")

        self.path = path
        self.block_size = block_size
        self.max_results = max_results

        self.bytes_fetched = 0
        self.requests_made = 0

        file_size = os.path.getsize(path)
        if volume_size is None:
            if file_size % volume_size_bytes(1):
                raise ValueError(
                    f"{path} is {file_size} bytes, not a whole number of GiB; "
                    f"pass volume_size explicitly"
                )
            volume_size = file_size >> GIB_SHIFT

        # Every listed block must be readable in full
        if volume_size_bytes(volume_size) > file_size:
            raise ValueError(
                f"volume of {volume_size} GiB does not fit in {path} ({file_size} bytes)"
            )
        self.volume_size = volume_size

        self._file = open(path, "rb")

    @property
    def block_count(self) -> int:
        return volume_size_bytes(self.volume_size) // self.block_size

    def list_blocks(
            self,
            snapshot_id: str,
            next_token: Optional[str] = None,
            context: Optional[CallContext] = None,
    ) -> BlockListing:
        """
        List the blocks of the backing file.

        With max_results set, next_token is the decimal index of the first
        block on the next page.
        """
        if context is not None:
            context.check()

        start = 0 if next_token is None else int(next_token)
        end = self.block_count
        if self.max_results is not None:
            end = min(end, start + self.max_results)

        blocks = [Block(index=i, token="") for i in range(start, end)]
        token = str(end) if end < self.block_count else None

        LOG.debug("listed blocks [%d, %d) of %s", start, end, self.path)

        return BlockListing(
            blocks=blocks,
            block_size=self.block_size,
            volume_size=self.volume_size,
            next_token=token,
        )

    def get_block(
            self,
            snapshot_id: str,
            block_index: int,
            block_token: str,
            context: Optional[CallContext] = None,
    ) -> bytes:
        """
        Read exactly one block from the backing file.

        A block past the end of the file comes back short; it is not
        padded. The reader reports that as a block size mismatch.
        """
        if context is not None:
            context.check()

        data = os.pread(self._file.fileno(), self.block_size, block_index * self.block_size)

        self.requests_made += 1
        self.bytes_fetched += len(data)

        return data

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def __enter__(self) -> "FileBlockService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
