"""Request classes."""

from pyreqchain.request.request import Request

__all__ = ["Request"]
