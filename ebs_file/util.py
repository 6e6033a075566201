"""
Utility helpers for block math and constants used by the snapshot reader.
"""

# Default EBS snapshot block size. The listing response is authoritative;
# this is only used where no listing is available (e.g. the file double).
BLOCK_SIZE = 512 * 1024

# EBS reports volume size in GiB.
GIB_SHIFT = 30


def volume_size_bytes(volume_size_gib: int) -> int:
    """
    Convert a volume size reported in GiB into bytes.

    Example:
        volume_size_gib = 8
        bytes = 8 << 30 = 8589934592
    """
    return volume_size_gib << GIB_SHIFT


def block_index_from_offset(offset: int, block_size: int) -> int:
    """
    Convert a byte offset into a block index.

    Example:
        offset = 1048600
        block_size = 524288
        block_index = 2
    """
    return offset // block_size


def block_offset_inside_block(offset: int, block_size: int) -> int:
    """
    Compute the offset *inside* a block.

    Example:
        offset = 1048600
        block_size = 524288
        block_offset = 1048600 % 524288 = 24
    """
    return offset % block_size


def cache_key(snapshot_id: str, block_index: int) -> str:
    """
    Cache key for one block of one snapshot.

    The snapshot id is part of the key so a single cache can be shared by
    readers of different snapshots.
    """
    return f"ebs:{snapshot_id}:{block_index}"
