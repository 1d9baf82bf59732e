"""
Proof Service Clients

Clients for the mail provider, artwork storage, and scan ingestion.
"""

from .lob_client import LobClient
from .scan_client import ScanClient
from .storage_client import StorageClient

__all__ = [
    "LobClient",
    "ScanClient",
    "StorageClient",
]
