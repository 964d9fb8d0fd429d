"""codebox: run shell commands against registered projects inside disposable containers."""

__version__ = "0.3.0"
