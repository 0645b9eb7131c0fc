"""Building blocks for an OCI container runtime on Linux."""

__version__ = "0.1.0"