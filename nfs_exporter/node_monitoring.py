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
# Command-line entry point: parses options, validates the runtime
# configuration and serves /metrics through a single gunicorn worker. Each
# scrape request triggers exactly one read of the kernel statistics.
# --

import argparse
import logging
import sys

import gunicorn.app.base
from flask import Flask, Response, abort, jsonify, request
from prometheus_client import CONTENT_TYPE_LATEST

from nfs_exporter import utils
from nfs_exporter.errors import CollectionError, ConfigError
from nfs_exporter.monitor import Monitor


class NfsExporterServer(gunicorn.app.base.BaseApplication):
    def __init__(self, app, options=None):
        self.options = options or {}
        self.application = app
        super().__init__()

    def load_config(self):
        config = {key: value for key, value in self.options.items() if key in self.cfg.settings and value is not None}
        for key, value in config.items():
            self.cfg.set(key.lower(), value)

    def load(self):
        return self.application


def create_app(monitor):
    """Build the Flask application serving the monitor's metrics.

    A scrape whose collection fails is answered with HTTP 503 and the failure
    reason; previously collected values are never served as current.
    """
    app = Flask("nfs_exporter")

    # Enforce network restrictions
    @app.before_request
    def restrict_ips():
        if "0.0.0.0" in monitor.allowed_ips:
            return
        elif request.remote_addr not in monitor.allowed_ips:
            abort(403)

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify(error="Access denied"), 403

    @app.route("/metrics")
    def metrics():
        try:
            payload = monitor.updateAllMetrics()
        except CollectionError as e:
            logging.warning(f"Scrape failed: {e}")
            return Response(f"{e}\n", status=503, content_type="text/plain; charset=utf-8")
        return Response(payload, content_type=CONTENT_TYPE_LATEST)

    return app


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="nfs-exporter", description="Export NFS statistics to Prometheus")
    parser.add_argument("-b", "--bind", metavar="ADDR", help="Bind to this local address (default 0.0.0.0)")
    parser.add_argument("-p", "--port", metavar="PORT", help="TCP port (default 9898)")
    parser.add_argument("-c", "--client", action="store_true", help="Publish NFS client statistics")
    parser.add_argument("-s", "--server", action="store_true", help="Publish NFS server statistics")
    parser.add_argument("--configfile", type=str, help="runtime config file", default=None)
    parser.add_argument("--stats-file", type=str, help="read statistics from a binary dump instead of the kernel")
    parser.add_argument("--logfile", type=str, help="log file (default: stdout)", default=None)
    parser.add_argument("--version", action="version", version=f"%(prog)s {utils.getVersion()}")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    try:
        config = utils.readConfig(utils.findConfigFile(args.configfile))
        collectors = config["nfs_exporter.collectors"]

        if args.stats_file:
            if not config.has_section("nfs_exporter.collectors.nfsd"):
                config.add_section("nfs_exporter.collectors.nfsd")
            config["nfs_exporter.collectors.nfsd"]["stats_file"] = args.stats_file

        mode = utils.resolveMode(args.client, args.server, default=collectors.get("mode", "both"))
        address, port = utils.validateBindAddress(
            args.bind or collectors.get("bind", "0.0.0.0"),
            args.port or collectors.get("port", "9898"),
        )
        timeout = collectors.getint("worker_timeout", 30)

        monitor = Monitor(config, logFile=args.logfile, mode=mode)
    except (ConfigError, ValueError) as e:
        logging.error(f"[ERROR]: {e}")
        sys.exit(1)

    app = create_app(monitor)

    def post_fork(server, worker):
        monitor.initMetrics()

    # one sync worker, one thread: requests are served strictly one at a time
    options = {
        "bind": utils.bindString(address, port),
        "workers": 1,
        "threads": 1,
        "worker_class": "sync",
        "timeout": timeout,
        "post_fork": post_fork,
    }

    logging.info(f"Serving NFS statistics on {options['bind']}")
    NfsExporterServer(app, options).run()


if __name__ == "__main__":
    main()
