"""Response classes and builders."""

from pyreqchain.response.response import Response, ResponseBuilder

__all__ = ["Response", "ResponseBuilder"]
