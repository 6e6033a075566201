"""
bootstrap.py
------------

Builds the BlockService used to open a snapshot (EbsBlockService or
FileBlockService) from command-line flags or environment variables, and
configures logging.

This file does not read snapshots itself. It only wires the backend; see
main.py for the demonstration reader.
"""

import argparse
import logging
import os

from ebs_file.context import CallContext
from ebs_file.ebs_service import EbsBlockService
from ebs_file.file_service import FileBlockService
from ebs_file.util import BLOCK_SIZE

LOG = logging.getLogger("ebs_file.bootstrap")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Read an EBS snapshot as a byte stream")

    parser.add_argument("snapshot_id", type=str,
                        help="Snapshot to open (ignored by the file backend)")

    parser.add_argument("--backend", choices=["ebs", "file"],
                        default=os.getenv("EBS_FILE_BACKEND", "ebs"),
                        help="Block service backend")

    parser.add_argument("--log-level", type=str,
                        default=os.getenv("EBS_FILE_LOG_LEVEL", "WARNING"),
                        help="Logging level")

    parser.add_argument("--timeout", type=float, default=None,
                        help="Deadline in seconds for all remote calls")

    # File backend
    parser.add_argument("--path", type=str, default="snapshot.img",
                        help="Backing image for the file backend")
    parser.add_argument("--block-size", type=int, default=BLOCK_SIZE,
                        help="Block size in bytes for the file backend")
    parser.add_argument("--volume-size", type=int, default=None,
                        help="Volume size in GiB for the file backend")

    # EBS backend
    parser.add_argument("--region", type=str,
                        default=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION")))
    parser.add_argument("--profile", type=str, default=os.getenv("AWS_PROFILE"))
    parser.add_argument("--endpoint", type=str, default=os.getenv("EBS_ENDPOINT"))
    parser.add_argument("--max-attempts", type=int, default=3,
                        help="Attempts per EBS call, including the first")

    parser.add_argument("--max-results", type=int, default=None,
                        help="Blocks per listing page")

    return parser


def create_service_from_args(argv=None):
    """
    Parse arguments and build the selected BlockService.

    Returns:
        (args, service) tuple.
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # -------------------------------------------------------------
    # Choose backend
    # -------------------------------------------------------------
    if args.backend == "file":
        service = FileBlockService(
            args.path,
            block_size=args.block_size,
            volume_size=args.volume_size,
            max_results=args.max_results,
        )
        LOG.info("Using FileBlockService at %s", args.path)

    else:  # args.backend == "ebs"
        service = EbsBlockService(
            region=args.region,
            profile=args.profile,
            endpoint_url=args.endpoint,
            max_results=args.max_results,
            max_attempts=args.max_attempts,
        )
        LOG.info("Using EbsBlockService region=%s endpoint=%s", args.region, args.endpoint)

    return args, service


def create_context(args) -> CallContext:
    return CallContext(timeout=args.timeout)
