"""Sandboxed execution service for untrusted user code."""

__version__ = "1.0.0"
