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

"""NFS server statistics decoder

Turns the raw statistics structure exported by the kernel into an immutable
StatsSnapshot. The kernel does not tag the structure with a version; the
length of the buffer is the only discriminator between structure revisions.
Every revision appends fields to the previous one, so an older structure is
always a byte prefix of a newer one:

  base     (576 bytes)  per-operation RPC counts, reply cache, lease state
  devstat  (640 bytes)  + read/write byte totals, durations, busy time

Fields are fixed-width unsigned integers in the host byte order. They are
copied into Python ints without any arithmetic so kernel counter wraparound
is preserved exactly as reported.
"""

import enum
import logging
import struct
from types import MappingProxyType
from typing import Mapping, NamedTuple

from nfs_exporter.errors import MalformedLayout
from nfs_exporter.kstat import RawStatsBuffer


class NfsOp(enum.Enum):
    """Server RPC operations, in the order of the kernel's counter array.

    The member order is the array index order and the value is the metric
    label. Reordering members mislabels counters.
    """

    # NFSv4.0
    ACCESS = "Access"
    CLOSE = "Close"
    COMMIT = "Commit"
    CREATE_V4 = "CreateV4"
    DELEG_PURGE = "DelegPurge"
    DELEG_RETURN = "DelegReturn"
    GETATTR = "GetAttr"
    GETFH = "GetFH"
    LINK = "Link"
    LOCK = "Lock"
    LOCKT = "LockT"
    LOCKU = "LockU"
    LOOKUP = "Lookup"
    LOOKUPP = "LookupP"
    NVERIFY = "Nverify"
    OPEN = "Open"
    OPENATTR = "OpenAttr"
    OPEN_CONFIRM = "OpenConfirm"
    OPEN_DOWNGRADE = "OpenDgrd"
    PUTFH = "PutFH"
    READ = "Read"
    READDIR = "ReadDir"
    READLINK = "ReadLink"
    REMOVE = "Remove"
    RENAME = "Rename"
    RENEW = "Renew"
    RESTOREFH = "RestoreFH"
    SAVEFH = "SaveFH"
    SECINFO = "SecInfo"
    SETATTR = "SetAttr"
    SETCLIENTID = "SetClientId"
    SETCLIENTID_CONFIRM = "SetClientIdConfirm"
    VERIFY = "Verify"
    WRITE = "Write"
    RELEASE_LOCKOWNER = "RelLockOwner"
    # NFSv4.1
    BACKCHANNEL_CTL = "BackChannelCtl"
    BIND_CONN_TO_SESSION = "BindConnToSess"
    EXCHANGE_ID = "ExchangeId"
    CREATE_SESSION = "CreateSession"
    DESTROY_SESSION = "DestroySession"
    FREE_STATEID = "FreeStateId"
    GET_DIR_DELEGATION = "GetDirDeleg"
    GETDEVICEINFO = "GetDevInfo"
    GETDEVICELIST = "GetDevList"
    LAYOUTCOMMIT = "LayoutCommit"
    LAYOUTGET = "LayoutGet"
    LAYOUTRETURN = "LayoutReturn"
    SECINFO_NO_NAME = "SecInfoNoName"
    SEQUENCE = "Sequence"
    SET_SSV = "SetSSV"
    TEST_STATEID = "TestStateId"
    WANT_DELEGATION = "WantDeleg"
    DESTROY_CLIENTID = "DestroyClientId"
    RECLAIM_COMPLETE = "ReclaimCompl"
    # NFSv3 procedures without an NFSv4 operation of their own
    CREATE = "Create"
    MKDIR = "MkDir"
    MKNOD = "MkNod"
    RMDIR = "RmDir"
    SYMLINK = "SymLink"
    FSSTAT = "FsStat"
    FSINFO = "FsInfo"
    PATHCONF = "PathConf"
    READDIRPLUS = "ReadDirPlus"

    @property
    def label(self):
        return self.value


# array index -> operation; shared by the decoder and the metric mapping
OPERATIONS = tuple(NfsOp)


class AggregateCounters(NamedTuple):
    bytes_read: int = 0
    bytes_write: int = 0
    duration_read: int = 0  # ns, wraps
    duration_write: int = 0  # ns, wraps
    duration_commit: int = 0  # ns, wraps
    start_count: int = 0
    done_count: int = 0
    busy_time: int = 0  # ns


class ReplyCacheCounters(NamedTuple):
    inprog_hits: int = 0
    nonidem_hits: int = 0
    misses: int = 0
    size: int = 0
    tcp_peak: int = 0


class ServerMiscCounters(NamedTuple):
    clients: int = 0
    delegations: int = 0
    lock_owners: int = 0
    locks: int = 0
    open_owners: int = 0
    opens: int = 0


class StatsSnapshot(NamedTuple):
    """One decoded poll of the kernel statistics. Immutable."""

    rpcs: Mapping[NfsOp, int]
    aggregate: AggregateCounters
    reply_cache: ReplyCacheCounters
    misc: ServerMiscCounters


class Layout:
    """One revision of the kernel statistics structure.

    Args:
        name (str): Human readable revision name (used in logs).
        fields (list): Ordered (key, struct code) pairs appended to the parent
            revision. A key of None marks padding or a field that is skipped.
        parent (Layout, optional): Revision this one extends.
    """

    def __init__(self, name, fields, parent=None):
        self.name = name
        self.fields = (parent.fields if parent else ()) + tuple(fields)
        self.keys = tuple(key for key, _ in self.fields if key is not None)
        self.struct = struct.Struct("=" + "".join(self.__code(key, code) for key, code in self.fields))

    @staticmethod
    def __code(key, code):
        # skipped fields are consumed as pad bytes
        if key is None:
            return "%dx" % struct.calcsize("=" + code)
        return code

    @property
    def size(self):
        return self.struct.size

    def offset_of(self, key):
        """Byte offset of a field within this revision."""
        offset = 0
        for name, code in self.fields:
            if name == key:
                return offset
            offset += struct.calcsize("=" + code)
        raise KeyError(key)

    def code_of(self, key):
        for name, code in self.fields:
            if name == key:
                return code
        raise KeyError(key)

    def unpack(self, data):
        return dict(zip(self.keys, self.struct.unpack_from(data)))

    def __repr__(self):
        return f"Layout({self.name}, {self.size} bytes)"


# fmt: off
BASE_LAYOUT = Layout(
    "base",
    [(op, "Q") for op in OPERATIONS]
    + [
        ("inprog_hits",  "Q"),
        (None,           "Q"),  # idempotent done hits, never incremented
        ("nonidem_hits", "Q"),
        ("misses",       "Q"),
        ("tcp_peak",     "Q"),
        ("size",         "Q"),
        ("clients",      "I"),
        ("open_owners",  "I"),
        ("opens",        "I"),
        ("lock_owners",  "I"),
        ("locks",        "I"),
        ("delegations",  "I"),
    ],
)

DEVSTAT_LAYOUT = Layout(
    "devstat",
    [
        ("bytes_read",      "Q"),
        ("bytes_write",     "Q"),
        ("duration_read",   "Q"),
        ("duration_write",  "Q"),
        ("duration_commit", "Q"),
        ("start_count",     "Q"),
        ("done_count",      "Q"),
        ("busy_time",       "Q"),
    ],
    parent=BASE_LAYOUT,
)
# fmt: on

# oldest first; the newest revision that fits the buffer wins
LAYOUTS = (BASE_LAYOUT, DEVSTAT_LAYOUT)


def select_layout(length):
    """Pick the newest structure revision contained in a buffer of the given length.

    Args:
        length (int): Number of valid bytes reported by the kernel.

    Returns:
        Layout: Matching structure revision.

    Raises:
        MalformedLayout: The buffer is shorter than the oldest revision.
    """
    selected = None
    for layout in LAYOUTS:
        if length >= layout.size:
            selected = layout
    if selected is None:
        raise MalformedLayout(length, LAYOUTS[0].size)
    return selected


def decode(buffer: RawStatsBuffer) -> StatsSnapshot:
    """Decode one raw kernel statistics buffer.

    Args:
        buffer (RawStatsBuffer): Bytes returned by the statistics source.

    Returns:
        StatsSnapshot: Fully populated snapshot; fields the detected revision
        does not carry are zero.

    Raises:
        MalformedLayout: The buffer is too short for any known revision.
    """
    length = min(buffer.length, len(buffer.data))
    layout = select_layout(length)
    if length > LAYOUTS[-1].size:
        logging.debug(f"ignoring {length - LAYOUTS[-1].size} trailing bytes of statistics data")

    values = layout.unpack(buffer.data)

    def group(cls):
        return cls(*(values.get(name, 0) for name in cls._fields))

    return StatsSnapshot(
        rpcs=MappingProxyType({op: values.get(op, 0) for op in OPERATIONS}),
        aggregate=group(AggregateCounters),
        reply_cache=group(ReplyCacheCounters),
        misc=group(ServerMiscCounters),
    )
