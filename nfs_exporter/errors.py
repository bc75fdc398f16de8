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

"""Exception types raised by the exporter.

Startup problems surface as ConfigError and terminate the process. Problems
reading or decoding the kernel statistics surface as CollectionError
subclasses; they fail the current scrape only.
"""


class NfsExporterError(Exception):
    """Base class for all exporter errors"""


class ConfigError(NfsExporterError):
    """Invalid runtime configuration or command-line input"""


class CollectionError(NfsExporterError):
    """A single collection pass failed; no snapshot was produced"""


class SourceUnavailable(CollectionError):
    """The kernel statistics object does not exist or cannot be accessed"""

    def __init__(self, object_name, reason):
        self.object_name = object_name
        self.reason = reason
        super().__init__(f"statistics object {object_name} unavailable: {reason}")


class StatsIOError(CollectionError):
    """Reading the kernel statistics object failed for any other reason"""

    def __init__(self, object_name, reason):
        self.object_name = object_name
        self.reason = reason
        super().__init__(f"failed reading statistics object {object_name}: {reason}")


class MalformedLayout(CollectionError):
    """The statistics buffer is shorter than the oldest known structure layout"""

    def __init__(self, length, minimum):
        self.length = length
        self.minimum = minimum
        super().__init__(f"statistics buffer of {length} bytes is shorter than the oldest known layout ({minimum} bytes)")
