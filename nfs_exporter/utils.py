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

"""Supporting helpers: runtime config discovery, versioning and logging filters"""

import configparser
import importlib.metadata
import importlib.resources
import ipaddress
import logging
import os

from nfs_exporter.errors import ConfigError

MODES = ("server", "client", "both")


def findConfigFile(configFileArgument=None):
    """Identify the runtime config file to use.

    Precedence: explicit argument, then $NFS_EXPORTER_CONFIG, then the
    default configuration shipped with the package.

    Args:
        configFileArgument (str, optional): Path given on the command line.

    Returns:
        str: Path to the runtime config file.
    """
    if configFileArgument:
        return configFileArgument

    envFile = os.environ.get("NFS_EXPORTER_CONFIG")
    if envFile:
        return envFile

    return str(importlib.resources.files("nfs_exporter") / "config" / "nfs_exporter.default")


def readConfig(configFile):
    """Load runtime config file.

    Raises:
        ConfigError: The file is missing or cannot be parsed.
    """
    if not os.path.isfile(configFile):
        raise ConfigError(f"Unable to find runtime config file: {configFile}")

    config = configparser.ConfigParser()
    try:
        config.read(configFile)
    except configparser.Error as e:
        raise ConfigError(f"Unable to parse runtime config file {configFile}: {e}")

    if not config.has_section("nfs_exporter.collectors"):
        config.add_section("nfs_exporter.collectors")

    logging.debug(f"Reading runtime-config from {configFile}")
    return config


def resolveMode(client=False, server=False, default="both"):
    """Map the client/server command-line switches to a statistics mode.

    Neither switch keeps the configured default; the server switch wins when
    both are given.
    """
    if server:
        return "server"
    if client:
        return "client"
    if default not in MODES:
        raise ConfigError(f"Unknown statistics mode '{default}' (expected one of {', '.join(MODES)})")
    return default


def validateBindAddress(address, port):
    """Check listener address and port before anything is bound.

    Returns:
        tuple: (address, port) normalized.

    Raises:
        ConfigError: Invalid address or port.
    """
    try:
        address = str(ipaddress.ip_address(address))
    except ValueError:
        raise ConfigError(f"Invalid bind address: {address}")

    try:
        port = int(port)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port: {port}")
    if not 0 < port < 65536:
        raise ConfigError(f"Invalid port: {port}")

    return address, port


def bindString(address, port):
    # gunicorn expects IPv6 literals in brackets
    if ":" in address:
        return f"[{address}]:{port}"
    return f"{address}:{port}"


def getVersion():
    """Return the installed package version"""
    try:
        return importlib.metadata.version("nfs-exporter")
    except importlib.metadata.PackageNotFoundError:
        from nfs_exporter import __version__

        return __version__


class PrefixFilter(logging.Filter):
    """Prepend a fixed string to every log message (used to indent registration output)"""

    def __init__(self, prefix):
        super().__init__()
        self.prefix = prefix

    def filter(self, record):
        record.msg = f"{self.prefix}{record.msg}"
        return True
