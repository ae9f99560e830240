"""shopnotify: multi-channel notification dispatch for the storefront."""

__version__ = "0.1.0"
