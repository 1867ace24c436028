"""Diff computation, hunk review and batched change application."""

__version__ = "0.1.0"
