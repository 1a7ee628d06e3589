"""Client classes and builders."""

from pyreqchain.client.client import Client, ClientBuilder
from pyreqchain.client.request_builder import RequestBuilder

__all__ = ["Client", "ClientBuilder", "RequestBuilder"]
