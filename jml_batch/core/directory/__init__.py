"""Directory (Microsoft Graph) client library.

This package provides a modular, testable interface to the directory
operations used by the joiner/leaver batches.

Architecture:
- base.py: DirectoryClient protocol consumed by the processor
- client.py: HTTP client with client-credentials auth and auto-refresh
- users.py: User lookup, creation, disable
- groups.py: Group lookup and membership
- sessions.py: Sign-in session revocation
- roles.py: Directory role lookups (privileged account detection)
- credentials.py: Temporary Access Pass issuance
- graph.py: GraphDirectory, the Graph-backed DirectoryClient
- memory.py: InMemoryDirectory, for demo mode and tests
- exceptions.py: Typed exceptions for error handling

Usage:
    from jml_batch.core.directory import GraphClient, GraphDirectory

    client = GraphClient()
    client.authenticate_service_account(tenant_id, client_id, secret)
    directory = GraphDirectory(client)
    user = directory.resolve_user("alice@contoso.com")
"""
from .base import DirectoryClient
from .client import GraphClient, REQUEST_TIMEOUT
from .exceptions import (
    DirectoryError,
    DirectoryAPIError,
    UserCreationError,
    MembershipError,
    CredentialIssuanceError,
)
from .graph import GraphDirectory
from .memory import InMemoryDirectory, build_demo_directory

__all__ = [
    "DirectoryClient",
    "GraphClient",
    "GraphDirectory",
    "InMemoryDirectory",
    "build_demo_directory",
    "REQUEST_TIMEOUT",
    "DirectoryError",
    "DirectoryAPIError",
    "UserCreationError",
    "MembershipError",
    "CredentialIssuanceError",
]
