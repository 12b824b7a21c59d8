"""Request gateway for the device compatibility lookup service."""

__version__ = "0.1.0"
