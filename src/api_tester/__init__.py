"""Interactive harness for exercising an HTTP API and receiving webhooks."""

__version__ = "0.1.0"
