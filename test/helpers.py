"""Builders for synthetic kernel statistics buffers"""

import struct

from nfs_exporter.kstat import RawStatsBuffer
from nfs_exporter.nfsstats import DEVSTAT_LAYOUT


def build_stats(values=None, layout=DEVSTAT_LAYOUT, extra=0):
    """Pack a statistics structure with the given field values, all others zero.

    Args:
        values (dict): Field key (NfsOp or counter name) -> value.
        layout (Layout): Structure revision to emit.
        extra (int): Number of trailing bytes appended past the structure.

    Returns:
        bytes: Raw structure in host byte order.
    """
    data = bytearray(layout.size + extra)
    for key, value in (values or {}).items():
        struct.pack_into("=" + layout.code_of(key), data, layout.offset_of(key), value)
    return bytes(data)


def raw(data, length=None):
    return RawStatsBuffer(data, len(data) if length is None else length)


class FakeQuery:
    """Statistics backend returning canned bytes, or raising a canned error"""

    def __init__(self, data=b"", error=None):
        self.data = data
        self.error = error
        self.calls = []

    def __call__(self, object_name):
        self.calls.append(object_name)
        if self.error is not None:
            raise self.error
        return self.data, len(self.data)
