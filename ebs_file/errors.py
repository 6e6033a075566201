"""
Errors raised by the snapshot reader.

Failures coming from the remote service (botocore ``ClientError``,
``OSError`` from the file double) are never wrapped; they reach the caller
unchanged.
"""


class SnapshotReadError(Exception):
    """Base class for errors raised by ebs_file itself."""


class BlockSizeMismatchError(SnapshotReadError):
    """
    A fetched or cached block does not have the snapshot's block size.

    The block is never padded or truncated to fit.
    """

    def __init__(self, block_index: int, expected: int, actual: int) -> None:
        self.block_index = block_index
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"invalid block size for block {block_index}: "
            f"got {actual} bytes, expected {expected} bytes"
        )


class ContextError(SnapshotReadError):
    """The call context no longer allows outbound calls."""


class CancelledError(ContextError):
    """The call context was cancelled by its owner."""


class DeadlineExceededError(ContextError):
    """The call context's deadline passed."""
