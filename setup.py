# Packaging for the NFS statistics exporter. The runtime config shipped in
# nfs_exporter/config is installed as package data.

from setuptools import find_packages, setup

setup(
    name="nfs-exporter",
    version="0.1.0",
    description="Export NFS server statistics to Prometheus",
    python_requires=">=3.9",
    packages=find_packages(include=["nfs_exporter", "nfs_exporter.*"]),
    package_data={"nfs_exporter": ["config/*.default"]},
    install_requires=[
        "flask",
        "gunicorn",
        "prometheus_client",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "nfs-exporter=nfs_exporter.node_monitoring:main",
        ],
    },
)
