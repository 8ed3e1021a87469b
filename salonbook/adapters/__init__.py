"""
Adapters layer - External integrations (hosted backend REST API).
"""

from .backend_client import BackendClient
from .mock_backend_client import MockBackendClient

__all__ = ["BackendClient", "MockBackendClient"]
