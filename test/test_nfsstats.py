# -------------------------------------------------------------------------------
# MIT License
#
# Copyright (c) 2023 - 2026 Advanced Micro Devices, Inc. All Rights Reserved.
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
# -------------------------------------------------------------------------------

import struct

import pytest

from nfs_exporter.errors import MalformedLayout
from nfs_exporter.nfsstats import (
    BASE_LAYOUT,
    DEVSTAT_LAYOUT,
    LAYOUTS,
    OPERATIONS,
    AggregateCounters,
    NfsOp,
    ReplyCacheCounters,
    ServerMiscCounters,
    decode,
    select_layout,
)
from test.helpers import build_stats, raw

# Kernel counter array order, one label per slot. Kept literal on purpose:
# it must only change together with the kernel structure.
# fmt: off
KERNEL_OP_ORDER = [
    "Access", "Close", "Commit", "CreateV4", "DelegPurge", "DelegReturn", "GetAttr", "GetFH",
    "Link", "Lock", "LockT", "LockU", "Lookup", "LookupP", "Nverify", "Open",
    "OpenAttr", "OpenConfirm", "OpenDgrd", "PutFH", "Read", "ReadDir", "ReadLink", "Remove",
    "Rename", "Renew", "RestoreFH", "SaveFH", "SecInfo", "SetAttr", "SetClientId", "SetClientIdConfirm",
    "Verify", "Write", "RelLockOwner",
    "BackChannelCtl", "BindConnToSess", "ExchangeId", "CreateSession", "DestroySession", "FreeStateId",
    "GetDirDeleg", "GetDevInfo", "GetDevList", "LayoutCommit", "LayoutGet", "LayoutReturn",
    "SecInfoNoName", "Sequence", "SetSSV", "TestStateId", "WantDeleg", "DestroyClientId", "ReclaimCompl",
    "Create", "MkDir", "MkNod", "RmDir", "SymLink", "FsStat", "FsInfo", "PathConf", "ReadDirPlus",
]

# (group, field, byte offset, struct code) for everything after the operation array
KERNEL_COUNTER_OFFSETS = [
    ("reply_cache", "inprog_hits",     504, "Q"),
    ("reply_cache", "nonidem_hits",    520, "Q"),
    ("reply_cache", "misses",          528, "Q"),
    ("reply_cache", "tcp_peak",        536, "Q"),
    ("reply_cache", "size",            544, "Q"),
    ("misc",        "clients",         552, "I"),
    ("misc",        "open_owners",     556, "I"),
    ("misc",        "opens",           560, "I"),
    ("misc",        "lock_owners",     564, "I"),
    ("misc",        "locks",           568, "I"),
    ("misc",        "delegations",     572, "I"),
    ("aggregate",   "bytes_read",      576, "Q"),
    ("aggregate",   "bytes_write",     584, "Q"),
    ("aggregate",   "duration_read",   592, "Q"),
    ("aggregate",   "duration_write",  600, "Q"),
    ("aggregate",   "duration_commit", 608, "Q"),
    ("aggregate",   "start_count",     616, "Q"),
    ("aggregate",   "done_count",      624, "Q"),
    ("aggregate",   "busy_time",       632, "Q"),
]
# fmt: on

IDEM_HITS_OFFSET = 512


def sentinel_buffer():
    """Full structure with a distinct value in every field, written at literal offsets."""
    data = bytearray(DEVSTAT_LAYOUT.size)
    for index, _ in enumerate(KERNEL_OP_ORDER):
        struct.pack_into("=Q", data, index * 8, 1_000 + index)
    for n, (_, _, offset, code) in enumerate(KERNEL_COUNTER_OFFSETS):
        struct.pack_into("=" + code, data, offset, 5_000 + n)
    struct.pack_into("=Q", data, IDEM_HITS_OFFSET, 0xDEAD)
    return bytes(data)


class TestOperationTable:
    def test_table_is_exhaustive_and_unique(self):
        assert len(OPERATIONS) == 63
        assert len(set(OPERATIONS)) == len(OPERATIONS)
        assert set(OPERATIONS) == set(NfsOp)
        assert len({op.label for op in OPERATIONS}) == len(OPERATIONS)

    def test_table_matches_kernel_order(self):
        assert [op.label for op in OPERATIONS] == KERNEL_OP_ORDER


class TestLayoutSelection:
    def test_known_layout_sizes(self):
        assert BASE_LAYOUT.size == 576
        assert DEVSTAT_LAYOUT.size == 640
        assert LAYOUTS == (BASE_LAYOUT, DEVSTAT_LAYOUT)

    @pytest.mark.parametrize(
        "length,expected",
        [(576, BASE_LAYOUT), (639, BASE_LAYOUT), (640, DEVSTAT_LAYOUT), (4096, DEVSTAT_LAYOUT)],
    )
    def test_select_by_length(self, length, expected):
        assert select_layout(length) is expected

    def test_newer_layout_extends_older(self):
        assert DEVSTAT_LAYOUT.fields[: len(BASE_LAYOUT.fields)] == BASE_LAYOUT.fields
        assert DEVSTAT_LAYOUT.offset_of("bytes_read") == BASE_LAYOUT.size


class TestDecode:
    @pytest.mark.parametrize("layout", LAYOUTS, ids=lambda layout: layout.name)
    def test_every_layout_has_all_operations(self, layout):
        snapshot = decode(raw(build_stats(layout=layout)))
        assert set(snapshot.rpcs) == set(NfsOp)
        assert len(snapshot.rpcs) == len(OPERATIONS)

    @pytest.mark.parametrize("length", [0, 1, 8, BASE_LAYOUT.size - 1])
    def test_short_buffer_is_malformed(self, length):
        with pytest.raises(MalformedLayout) as excinfo:
            decode(raw(bytes(length)))
        assert excinfo.value.length == length
        assert excinfo.value.minimum == BASE_LAYOUT.size

    def test_sentinels_land_in_named_fields(self):
        snapshot = decode(raw(sentinel_buffer()))

        for index, label in enumerate(KERNEL_OP_ORDER):
            assert snapshot.rpcs[NfsOp(label)] == 1_000 + index, label

        for n, (group, field, _, _) in enumerate(KERNEL_COUNTER_OFFSETS):
            assert getattr(getattr(snapshot, group), field) == 5_000 + n, field

    def test_idempotent_hits_are_not_reported(self):
        snapshot = decode(raw(sentinel_buffer()))
        values = list(snapshot.reply_cache) + list(snapshot.misc) + list(snapshot.aggregate)
        assert 0xDEAD not in values

    def test_old_layout_prefix_decodes_identically(self):
        full = sentinel_buffer()
        new = decode(raw(full))
        old = decode(raw(full[: BASE_LAYOUT.size]))

        assert dict(old.rpcs) == dict(new.rpcs)
        assert old.reply_cache == new.reply_cache
        assert old.misc == new.misc
        assert old.aggregate == AggregateCounters()
        assert new.aggregate != AggregateCounters()

    def test_reported_length_limits_decoding(self):
        full = sentinel_buffer()
        snapshot = decode(raw(full, length=BASE_LAYOUT.size))
        assert snapshot.aggregate == AggregateCounters()
        assert snapshot.rpcs[NfsOp.ACCESS] == 1_000

    def test_trailing_bytes_are_ignored(self):
        values = {NfsOp.WRITE: 7, "busy_time": 9}
        padded = build_stats(values, extra=64)
        padded = padded[: DEVSTAT_LAYOUT.size] + b"\xff" * 64
        assert decode(raw(padded)) == decode(raw(build_stats(values)))

    def test_decode_is_idempotent(self):
        buffer = raw(sentinel_buffer())
        first = decode(buffer)
        second = decode(buffer)
        assert first == second
        assert dict(first.rpcs) == dict(second.rpcs)

    def test_end_to_end_scenario(self):
        buffer = raw(build_stats({"bytes_read": 100, "bytes_write": 200, NfsOp.GETATTR: 5}))
        snapshot = decode(buffer)

        assert snapshot.aggregate.bytes_read == 100
        assert snapshot.aggregate.bytes_write == 200
        assert snapshot.rpcs[NfsOp.GETATTR] == 5

        for op, count in snapshot.rpcs.items():
            if op is not NfsOp.GETATTR:
                assert count == 0, op
        assert snapshot.aggregate == AggregateCounters(bytes_read=100, bytes_write=200)
        assert snapshot.reply_cache == ReplyCacheCounters()
        assert snapshot.misc == ServerMiscCounters()

    def test_counter_extremes_are_preserved(self):
        values = {
            NfsOp.READ: 2**64 - 1,
            "duration_write": 2**64 - 1,
            "clients": 2**32 - 1,
            "locks": 2**31,
        }
        snapshot = decode(raw(build_stats(values)))

        assert snapshot.rpcs[NfsOp.READ] == 18446744073709551615
        assert snapshot.aggregate.duration_write == 18446744073709551615
        assert snapshot.misc.clients == 4294967295
        assert snapshot.misc.locks == 2147483648

    def test_snapshot_is_immutable(self):
        snapshot = decode(raw(build_stats()))
        with pytest.raises(TypeError):
            snapshot.rpcs[NfsOp.READ] = 1
        with pytest.raises(AttributeError):
            snapshot.aggregate.bytes_read = 1
