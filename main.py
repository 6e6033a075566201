"""
Demonstration reader: opens a snapshot, dumps its first 512 bytes, seeks
back to the start and dumps them again.
"""

import io
import sys
from contextlib import closing

from bootstrap import create_context, create_service_from_args
from ebs_file.snapshot_file import open_snapshot

DUMP_SIZE = 512


def hex_dump(data: bytes) -> str:
    lines = []
    for offset in range(0, len(data), 16):
        chunk = data[offset:offset + 16]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        text = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"{offset:08x}  {hex_part:<47}  |{text}|")
    return "\n".join(lines)


def main(argv=None) -> int:
    args, service = create_service_from_args(argv)

    with closing(service):
        with open_snapshot(args.snapshot_id, service, context=create_context(args)) as rs:
            first = rs.read(DUMP_SIZE)
            print(hex_dump(first))

            rs.seek(0, io.SEEK_SET)

            second = rs.read(DUMP_SIZE)
            print(hex_dump(second))

    if first != second:
        print("re-read after seek returned different bytes", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
