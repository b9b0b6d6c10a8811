"""Identity-directory backend (Auth0 Management API) and its tools."""

from .client import DirectoryClient, DirectoryClientFactory, DirectoryCredentials, DirectoryError
from .tools import register_directory_tools

__all__ = [
    "DirectoryClient",
    "DirectoryClientFactory",
    "DirectoryCredentials",
    "DirectoryError",
    "register_directory_tools",
]
