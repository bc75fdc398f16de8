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

"""Kernel statistics source

Reads the NFS server statistics structure exported by the kernel. The live
source is sysctlbyname(3), queried once per call: a first call with a null
output buffer reports the size to allocate and a second call fills the
buffer and reports how many bytes the kernel actually wrote. Older kernels
write fewer bytes than newer ones; the reported length is returned as-is and
interpreted by the decoder.

A file-backed query is provided to replay captured statistics dumps.
"""

import ctypes
import ctypes.util
import errno
import logging
import os
from typing import NamedTuple

from nfs_exporter.errors import SourceUnavailable, StatsIOError

NFSD_STATS_OBJECT = "vfs.nfsd.nfsstats"

# errno values meaning the object is absent or off limits
_UNAVAILABLE_ERRNOS = (errno.ENOENT, errno.EPERM, errno.EACCES, errno.ENOTDIR)


class RawStatsBuffer(NamedTuple):
    """Bytes written by the kernel and the length it reported."""

    data: bytes
    length: int


def _raise_for_errno(object_name, err):
    reason = os.strerror(err) if err else "unknown error"
    if err in _UNAVAILABLE_ERRNOS:
        raise SourceUnavailable(object_name, reason)
    raise StatsIOError(object_name, reason)


class SysctlQuery:
    """Query a named statistics object through sysctlbyname(3).

    Args:
        libc (ctypes.CDLL, optional): C library exposing sysctlbyname. Loaded
            on first use when not provided.
    """

    def __init__(self, libc=None):
        self.__libc = libc
        self.__sysctlbyname = None

    def __load(self, object_name):
        if self.__sysctlbyname is not None:
            return self.__sysctlbyname

        if self.__libc is None:
            path = ctypes.util.find_library("c")
            try:
                self.__libc = ctypes.CDLL(path, use_errno=True)
            except OSError as e:
                raise SourceUnavailable(object_name, f"unable to load C library: {e}")

        try:
            func = self.__libc.sysctlbyname
        except AttributeError:
            raise SourceUnavailable(object_name, "sysctlbyname() not supported on this platform")

        func.argtypes = [
            ctypes.c_char_p,
            ctypes.c_void_p,
            ctypes.POINTER(ctypes.c_size_t),
            ctypes.c_void_p,
            ctypes.c_size_t,
        ]
        func.restype = ctypes.c_int
        self.__sysctlbyname = func
        return func

    def __call__(self, object_name):
        """Read the object.

        Returns:
            tuple: (data, length) where data is the allocated buffer and
            length the number of bytes the kernel reported writing.
        """
        sysctlbyname = self.__load(object_name)
        name = object_name.encode("ascii")

        # size probe
        size = ctypes.c_size_t(0)
        if sysctlbyname(name, None, ctypes.byref(size), None, 0) != 0:
            _raise_for_errno(object_name, ctypes.get_errno())

        buf = ctypes.create_string_buffer(size.value)
        length = ctypes.c_size_t(size.value)
        if sysctlbyname(name, buf, ctypes.byref(length), None, 0) != 0:
            _raise_for_errno(object_name, ctypes.get_errno())

        return buf.raw, length.value


class FileStatsQuery:
    """Read a captured statistics dump from a file instead of the kernel.

    Args:
        path (str): Binary file holding one raw statistics structure.
    """

    def __init__(self, path):
        self.__path = path

    def __call__(self, object_name):
        try:
            with open(self.__path, "rb") as f:
                data = f.read()
        except (FileNotFoundError, PermissionError) as e:
            raise SourceUnavailable(object_name, f"{self.__path}: {e.strerror}")
        except OSError as e:
            raise StatsIOError(object_name, f"{self.__path}: {e}")
        return data, len(data)


def read_raw(object_name=NFSD_STATS_OBJECT, query=None) -> RawStatsBuffer:
    """Read one raw statistics buffer.

    Args:
        object_name (str): Kernel statistics object to query.
        query (callable, optional): Backend returning (data, length) for a
            name. Defaults to a sysctlbyname(3) query.

    Returns:
        RawStatsBuffer: Exactly the bytes the kernel wrote.

    Raises:
        SourceUnavailable: Object missing or not accessible.
        StatsIOError: Any other read failure.
    """
    if query is None:
        query = SysctlQuery()

    data, length = query(object_name)
    if length > len(data):
        raise StatsIOError(object_name, f"reported length {length} exceeds buffer size {len(data)}")

    logging.debug(f"read {length} bytes from {object_name}")
    return RawStatsBuffer(bytes(data[:length]), length)
