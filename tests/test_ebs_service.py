import io
import logging

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from botocore.stub import Stubber

from ebs_file.context import CallContext
from ebs_file.ebs_service import EbsBlockService
from ebs_file.errors import CancelledError
from ebs_file.snapshot_file import open_snapshot
from ebs_file.util import BLOCK_SIZE

SNAPSHOT = "snap-0123456789abcdef0"


@pytest.fixture
def ebs_client():
    """Return a low-level boto3 EBS client that never touches the network."""
    return boto3.client(
        "ebs",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(ebs_client):
    with Stubber(ebs_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def service(ebs_client):
    """Return an EbsBlockService on the stubbed client."""
    return EbsBlockService(client=ebs_client)


def block_body(data: bytes) -> dict:
    return {
        "DataLength": len(data),
        "BlockData": StreamingBody(io.BytesIO(data), len(data)),
        "ChecksumAlgorithm": "SHA256",
        "Checksum": "unused",
    }


def test_list_blocks_single_page(service, stubber):
    stubber.add_response(
        "list_snapshot_blocks",
        {
            "Blocks": [
                {"BlockIndex": 0, "BlockToken": "AAUBAb"},
                {"BlockIndex": 9, "BlockToken": "AAUBAc"},
            ],
            "BlockSize": BLOCK_SIZE,
            "VolumeSize": 8,
        },
        {"SnapshotId": SNAPSHOT},
    )

    listing = service.list_blocks(SNAPSHOT)

    assert [(b.index, b.token) for b in listing.blocks] == [(0, "AAUBAb"), (9, "AAUBAc")]
    assert listing.block_size == BLOCK_SIZE
    assert listing.volume_size == 8
    assert listing.next_token is None


def test_list_blocks_passes_cursor_and_page_size(ebs_client, stubber):
    service = EbsBlockService(client=ebs_client, max_results=100)
    stubber.add_response(
        "list_snapshot_blocks",
        {"Blocks": [], "BlockSize": BLOCK_SIZE, "VolumeSize": 1, "NextToken": "page3"},
        {"SnapshotId": SNAPSHOT, "NextToken": "page2", "MaxResults": 100},
    )

    listing = service.list_blocks(SNAPSHOT, "page2")

    assert listing.blocks == []
    assert listing.next_token == "page3"


def test_get_block(service, stubber):
    data = b"\xaa" * BLOCK_SIZE
    stubber.add_response(
        "get_snapshot_block",
        block_body(data),
        {"SnapshotId": SNAPSHOT, "BlockIndex": 3, "BlockToken": "AAUBAb"},
    )

    assert service.get_block(SNAPSHOT, 3, "AAUBAb") == data


def test_get_block_logs_time_left_on_deadline(service, stubber, caplog):
    stubber.add_response(
        "get_snapshot_block",
        block_body(b"\x00" * BLOCK_SIZE),
        {"SnapshotId": SNAPSHOT, "BlockIndex": 1, "BlockToken": "AAUBAb"},
    )

    with caplog.at_level(logging.DEBUG, logger="ebs_file.ebs_service"):
        service.get_block(SNAPSHOT, 1, "AAUBAb", context=CallContext(timeout=60))

    record = caplog.records[-1]
    assert "GetSnapshotBlock" in record.getMessage()
    assert 0 < record.args[-1] <= 60


def test_client_error_propagates(service, stubber):
    stubber.add_client_error(
        "get_snapshot_block",
        service_error_code="ResourceNotFoundException",
        http_status_code=404,
    )

    with pytest.raises(ClientError) as excinfo:
        service.get_block(SNAPSHOT, 0, "AAUBAb")

    assert excinfo.value.response["Error"]["Code"] == "ResourceNotFoundException"


def test_cancelled_context_makes_no_call(service, stubber):
    ctx = CallContext()
    ctx.cancel()

    with pytest.raises(CancelledError):
        service.list_blocks(SNAPSHOT, context=ctx)
    with pytest.raises(CancelledError):
        service.get_block(SNAPSHOT, 0, "AAUBAb", context=ctx)


def test_open_snapshot_over_ebs(service, stubber):
    """Two listing pages, one allocated block fetched once, one sparse block."""
    stubber.add_response(
        "list_snapshot_blocks",
        {
            "Blocks": [{"BlockIndex": 0, "BlockToken": "tok0"}],
            "BlockSize": BLOCK_SIZE,
            "VolumeSize": 1,
            "NextToken": "next",
        },
        {"SnapshotId": SNAPSHOT},
    )
    stubber.add_response(
        "list_snapshot_blocks",
        {
            "Blocks": [{"BlockIndex": 2, "BlockToken": "tok2"}],
            "BlockSize": BLOCK_SIZE,
            "VolumeSize": 1,
        },
        {"SnapshotId": SNAPSHOT, "NextToken": "next"},
    )
    stubber.add_response(
        "get_snapshot_block",
        block_body(b"\x01" * BLOCK_SIZE),
        {"SnapshotId": SNAPSHOT, "BlockIndex": 0, "BlockToken": "tok0"},
    )

    rs = open_snapshot(SNAPSHOT, service)

    assert rs.size() == 1 << 30
    assert rs.read(4) == b"\x01" * 4

    buf = bytearray(b"\xff" * 8)
    assert rs.read_at(buf, BLOCK_SIZE) == 8
    assert buf == bytes(8)


def test_listing_error_fails_open(service, stubber):
    stubber.add_client_error(
        "list_snapshot_blocks",
        service_error_code="AccessDeniedException",
        http_status_code=403,
    )

    with pytest.raises(ClientError):
        open_snapshot(SNAPSHOT, service)
