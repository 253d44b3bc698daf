"""Concrete transports."""

from .ami import AmiTransport

__all__ = ["AmiTransport"]
