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

# Prometheus exporter for NFS server statistics.
#
# Supporting monitor class: owns the metrics registry and the enabled data
# collectors, and performs exactly one collection per scrape request.
# --

import importlib
import logging
import os
import platform
import re
import sys
import time

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from nfs_exporter import utils
from nfs_exporter.collector_definitions import COLLECTORS
from nfs_exporter.errors import ConfigError


class Monitor:
    def __init__(self, config, logFile=None, mode=None):

        self.config = config  # cache runtime configuration

        logLevel = os.environ.get("NFS_EXPORTER_LOG_LEVEL", "INFO").upper()
        if logFile:
            hostname = platform.node().split(".", 1)[0]
            logging.basicConfig(
                format=f"[{hostname}: %(asctime)s] %(message)s",
                level=logLevel,
                filename=logFile,
                datefmt="%H:%M:%S",
            )
        else:
            logging.basicConfig(format="%(message)s", level=logLevel, stream=sys.stdout)

        if not self.config.has_section("nfs_exporter.collectors"):
            self.config.add_section("nfs_exporter.collectors")

        # embed additional info into runtime config
        if not self.config.has_section("nfs_exporter.internal"):
            self.config.add_section("nfs_exporter.internal")
        if mode is None:
            mode = utils.resolveMode(default=self.config["nfs_exporter.collectors"].get("mode", "both"))
        self.config["nfs_exporter.internal"]["mode"] = mode

        self.enforce_global_runtime_constraints()

        allowed_ips = config["nfs_exporter.collectors"].get("allowed_ips", "0.0.0.0")
        self.allowed_ips = re.split(r",\s*", allowed_ips)
        logging.info("Allowed query IPs = %s" % self.allowed_ips)

        # single registry for all exported metrics; written only by updateAllMetrics()
        self.registry = CollectorRegistry()

        # initialize collection of data collectors
        self.__collectors = []

        logging.debug("Completed collector initialization (base class)")
        return

    @property
    def mode(self):
        return self.config["nfs_exporter.internal"]["mode"]

    def enforce_global_runtime_constraints(self):
        """Reject configurations that cannot be served.

        Raises:
            ConfigError: Unknown or unimplemented statistics mode.
        """
        mode = self.mode
        if mode not in utils.MODES:
            raise ConfigError(f"Unknown statistics mode '{mode}' (expected one of {', '.join(utils.MODES)})")
        if mode == "client":
            raise ConfigError("NFS client statistics are unimplemented; use server mode (-s) or the default mode")
        if mode == "both":
            logging.warning("NFS client statistics are unimplemented; publishing NFS server statistics only")

    def initMetrics(self):

        for collector in COLLECTORS:
            modes = collector["modes"]
            if modes is None or self.mode in modes:
                module = importlib.import_module(collector["file"])
                cls = getattr(module, collector["className"])
                self.__collectors.append(cls(config=self.config, registry=self.registry))

        # Initialize all metrics
        prefix_filter = utils.PrefixFilter("   ")
        for collector in self.__collectors:
            logging.info("\nRegistering metrics for collector: %s" % collector.__class__.__name__)
            logging.getLogger().addFilter(prefix_filter)
            try:
                collector.registerMetrics()
            finally:
                logging.getLogger().removeFilter(prefix_filter)

        # Register performance runtime metric(s)
        self.__subtimers = self.config["nfs_exporter.collectors"].getboolean("enable_perf_collector_subtimers", False)
        labels = ["collector"]
        logging.info(
            "\nRegistering performance metrics for collector timing (subtimers enabled = %s)" % self.__subtimers
        )

        self.__perfMetric = Gauge(
            "nfs_exporter_perf_runtime_seconds",
            "Time to complete one data collection sample in seconds",
            labelnames=labels,
            registry=self.registry,
        )

    def updateAllMetrics(self):
        """Run one collection pass and render the exposition document.

        Returns:
            bytes: Prometheus text exposition of the registry.

        Raises:
            CollectionError: A collector failed to read or decode its source.
        """
        start_time_total = time.perf_counter()

        for collector in self.__collectors:
            start_time = time.perf_counter()
            collector.updateMetrics()
            if self.__subtimers:
                elapsed_time = time.perf_counter() - start_time
                self.__perfMetric.labels(collector.__class__.__name__).set(elapsed_time)

        elapsed_time_total = time.perf_counter() - start_time_total
        self.__perfMetric.labels("total").set(elapsed_time_total)

        return generate_latest(self.registry)
