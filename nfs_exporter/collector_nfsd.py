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

"""NFS server monitoring

Implements prometheus gauge metrics mirroring the NFS server counters kept by
the kernel. Values are raw kernel counters republished as gauges, since the
kernel owns their current value. Example metrics:

nfs_nfsd_requests_total{method="GetAttr"} 5.0
nfs_nfsd_total_bytes{method="Read"} 100.0
nfs_nfsd_total_duration{method="Commit"} 4.2e+07
nfs_nfsd_server_cache_misses 1234.0
nfs_nfsd_clients 3.0
"""

import configparser
import logging

from prometheus_client import CollectorRegistry, Gauge

from nfs_exporter import kstat, nfsstats
from nfs_exporter.collector_base import Collector
from nfs_exporter.nfsstats import OPERATIONS


class NFSD(Collector):
    def __init__(self, config: configparser.ConfigParser, registry: CollectorRegistry, query=None):
        """Initialize the NFS server data collector.

        Args:
            config (configparser.ConfigParser): Cached copy of runtime configuration.
            registry (CollectorRegistry): Registry owning the exported metrics.
            query (callable, optional): Statistics backend override (see kstat.read_raw).
        """
        logging.debug(f"Initializing {self.__class__.__name__} data collector")

        self.__prefix = "nfs_nfsd_"
        self.__registry = registry
        self.__metrics = {}
        self.__object_name = kstat.NFSD_STATS_OBJECT
        stats_file = None

        # runtime config parsing
        if config.has_section("nfs_exporter.collectors.nfsd"):
            section = config["nfs_exporter.collectors.nfsd"]
            self.__object_name = section.get("object_name", self.__object_name)
            stats_file = section.get("stats_file", None) or None

        if query is not None:
            self.__query = query
        elif stats_file:
            logging.info(f"Reading NFS server statistics from file {stats_file}")
            self.__query = kstat.FileStatsQuery(stats_file)
        else:
            self.__query = kstat.SysctlQuery()

    def registerMetrics(self):
        """Register metrics of interest"""

        # fmt: off
        self.__vector_metrics = [
            {"metricName": "requests_total", "description": "Count of server RPCs"},
            {"metricName": "total_bytes",    "description": "Total nfsd bytes per operation"},
            {"metricName": "total_duration", "description": "Total nfsd nanoseconds spent processing each operation.  May wrap."},
        ]

        # (metric name, description, snapshot group, snapshot field)
        self.__scalar_metrics = [
            ("start_count",                  "Total number of operations started since boot",                   "aggregate",   "start_count"),
            ("done_count",                   "Total number of operations completed since boot",                 "aggregate",   "done_count"),
            ("busytime",                     "Total time in ns that nfsd was busy with at least one operation", "aggregate",   "busy_time"),
            ("cache_in_progress_hits",       "Server cache in-progress hits",                                   "reply_cache", "inprog_hits"),
            ("cache_nonidempotent_hits",     "Server cache non-idempotent hits",                                "reply_cache", "nonidem_hits"),
            ("server_cache_misses",          "Server cache misses",                                             "reply_cache", "misses"),
            ("server_cache_size",            "Server cache size in entries",                                    "reply_cache", "size"),
            ("server_cache_tcp_peak",        "Peak size of the NFS server's TCP client cache",                  "reply_cache", "tcp_peak"),
            ("clients",                      "Number of connected NFS v4.x clients",                            "misc",        "clients"),
            ("delegations",                  "Number of active NFS delegations",                                "misc",        "delegations"),
            ("lock_owners",                  "Number of active NFS lock owners",                                "misc",        "lock_owners"),
            ("locks",                        "Number of active NFS locks",                                      "misc",        "locks"),
            ("open_owners",                  "Number of active NFS v4.0 open owners",                           "misc",        "open_owners"),
            ("opens",                        "Number of NFS v4.x open files",                                   "misc",        "opens"),
        ]

        # (method label, aggregate field)
        self.__bytes_fields = [("Read", "bytes_read"), ("Write", "bytes_write")]
        self.__duration_fields = [("Read", "duration_read"), ("Write", "duration_write"), ("Commit", "duration_commit")]
        # fmt: on

        for item in self.__vector_metrics:
            metric = item["metricName"]
            self.__metrics[metric] = Gauge(
                self.__prefix + metric, item["description"], labelnames=["method"], registry=self.__registry
            )
            logging.info("--> [registered] %s (gauge)" % (self.__prefix + metric))

        for metric, description, _, _ in self.__scalar_metrics:
            self.__metrics[metric] = Gauge(self.__prefix + metric, description, registry=self.__registry)
            logging.info("--> [registered] %s (gauge)" % (self.__prefix + metric))

    def updateMetrics(self):
        """Update registered metrics of interest

        Raises:
            CollectionError: The statistics could not be read or decoded.
        """
        snapshot = self.collect()
        self.publish(snapshot)

    def collect(self):
        """Perform one read and decode pass.

        Returns:
            StatsSnapshot: Freshly decoded statistics.
        """
        buffer = kstat.read_raw(self.__object_name, query=self.__query)
        return nfsstats.decode(buffer)

    def publish(self, snapshot: nfsstats.StatsSnapshot):
        """Copy every snapshot field into its gauge, overwriting previous values."""

        rpcs = self.__metrics["requests_total"]
        for op in OPERATIONS:
            rpcs.labels(method=op.label).set(snapshot.rpcs[op])

        for method, field in self.__bytes_fields:
            self.__metrics["total_bytes"].labels(method=method).set(getattr(snapshot.aggregate, field))

        for method, field in self.__duration_fields:
            self.__metrics["total_duration"].labels(method=method).set(getattr(snapshot.aggregate, field))

        for metric, _, group, field in self.__scalar_metrics:
            self.__metrics[metric].set(getattr(getattr(snapshot, group), field))

        return
