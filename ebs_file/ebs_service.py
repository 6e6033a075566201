import logging
from typing import Optional

from boto3.session import Session
from botocore.config import Config as BotoConfig

from ebs_file.block_service import Block, BlockListing, BlockService
from ebs_file.context import CallContext

LOG = logging.getLogger("ebs_file.ebs_service")


class EbsBlockService(BlockService):
    """
    Block service backed by the EBS direct APIs.

    Uses ListSnapshotBlocks for the listing and GetSnapshotBlock for block
    content. Retries are left to botocore's retry handler; every other
    failure (ClientError, connection errors) propagates to the caller
    unchanged.
    """

    def __init__(
            self,
            client=None,
            region: Optional[str] = None,
            profile: Optional[str] = None,
            endpoint_url: Optional[str] = None,
            max_results: Optional[int] = None,
            max_attempts: int = 3,
    ) -> None:
        """
        Args:
            client: Pre-built boto3 "ebs" client. When given, the other
                    connection arguments are ignored.
            region: AWS region of the snapshot.
            profile: Named profile from the shared AWS config.
            endpoint_url: Optional endpoint override.
            max_results: Blocks per ListSnapshotBlocks page (100-10000).
                         None lets the service pick.
            max_attempts: Total attempts per call, including the first.
        """
        self.max_results = max_results

        if client is None:
            session = Session(profile_name=profile, region_name=region)
            client = session.client(
                "ebs",
                endpoint_url=endpoint_url,
                config=BotoConfig(retries={"max_attempts": max_attempts, "mode": "standard"}),
            )
        self.client = client

    @staticmethod
    def _check(context: Optional[CallContext]) -> Optional[float]:
        """
        Fail if the context forbids another call; return the seconds left
        before its deadline (None without a deadline).
        """
        if context is None:
            return None
        context.check()
        return context.remaining()

    def list_blocks(
            self,
            snapshot_id: str,
            next_token: Optional[str] = None,
            context: Optional[CallContext] = None,
    ) -> BlockListing:
        remaining = self._check(context)

        params = {"SnapshotId": snapshot_id}
        if next_token is not None:
            params["NextToken"] = next_token
        if self.max_results is not None:
            params["MaxResults"] = self.max_results

        resp = self.client.list_snapshot_blocks(**params)

        blocks = [
            Block(index=b["BlockIndex"], token=b["BlockToken"])
            for b in resp.get("Blocks", [])
        ]
        LOG.debug(
            "ListSnapshotBlocks snapshot=%s blocks=%d more=%s remaining=%s",
            snapshot_id,
            len(blocks),
            "NextToken" in resp,
            remaining,
        )

        return BlockListing(
            blocks=blocks,
            block_size=resp["BlockSize"],
            volume_size=resp["VolumeSize"],
            next_token=resp.get("NextToken"),
        )

    def get_block(
            self,
            snapshot_id: str,
            block_index: int,
            block_token: str,
            context: Optional[CallContext] = None,
    ) -> bytes:
        remaining = self._check(context)

        resp = self.client.get_snapshot_block(
            SnapshotId=snapshot_id,
            BlockIndex=block_index,
            BlockToken=block_token,
        )

        body = resp["BlockData"]
        try:
            data = body.read()
        finally:
            body.close()

        LOG.debug(
            "GetSnapshotBlock snapshot=%s index=%d length=%d remaining=%s",
            snapshot_id,
            block_index,
            len(data),
            remaining,
        )
        return data

    def close(self) -> None:
        self.client.close()
