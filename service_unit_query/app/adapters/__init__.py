"""
Adapters package for the Unit Query gateway.

Contains the HTTP client for the Salesforce REST API and access to the
server-held bearer token. Keep adapters thin: no retries, no caching.
"""

from .salesforce_client import SalesforceClient, UpstreamResponse, UpstreamTransportError
from .token_file import read_bearer_token

__all__ = [
    "SalesforceClient",
    "UpstreamResponse",
    "UpstreamTransportError",
    "read_bearer_token",
]
