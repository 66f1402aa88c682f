"""CyberWeaver: persistence layer for diagram canvas nodes."""

__version__ = "0.1.0"
