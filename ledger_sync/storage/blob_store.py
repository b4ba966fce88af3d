"""
Blob store contract and a filesystem implementation.

Blobs are addressed by a relative path inside one bucket.
Uploading to an existing path overwrites it, so writing the
same logical file twice leaves a single copy behind.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Protocol

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store data at path, overwriting. Returns the stored path."""
        ...

    def public_url(self, path: str) -> str:
        ...


class FileSystemBlobStore:
    """
    Stores blobs as files under <root>/<bucket>.

    Writes go through a temporary file and a rename, so a reader
    never sees a half-written blob. File I/O runs in a worker
    thread to keep the event loop free.
    """

    def __init__(self, root: str | Path, bucket: str, public_base_url: str):
        self.bucket = bucket
        self.base_dir = (Path(root) / bucket).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValueError(f"Invalid blob path: {path!r}")
        target = (self.base_dir / relative).resolve()
        if self.base_dir not in target.parents:
            raise ValueError(f"Blob path escapes bucket: {path!r}")
        return target

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".part")
        tmp.write_bytes(data)
        tmp.replace(target)

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)
        await asyncio.to_thread(self._write, target, data)
        logger.debug(f"Stored blob {path} ({len(data)} bytes, {content_type})")
        return path

    async def read(self, path: str) -> bytes:
        target = self._resolve(path)
        return await asyncio.to_thread(target.read_bytes)

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{path}"
