"""Object storage for attachment images."""

from ledger_sync.storage.blob_store import BlobStore, FileSystemBlobStore

__all__ = ["BlobStore", "FileSystemBlobStore"]
