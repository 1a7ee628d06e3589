"""pyreqchain pytest plugin for HTTP client mocking."""

from .mock import ClientMocker, Mock, MockTransport, client_mocker

__all__ = [  # noqa: RUF022
    "client_mocker",
    "ClientMocker",
    "Mock",
    "MockTransport",
]
