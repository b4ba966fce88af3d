"""
Attachment uploader: turns one pending attachment into a persisted one.

Each upload:
1. Skips attachments that already have a file_path
2. Decodes the in-memory payload
3. Derives a storage path from account, entry and file name
4. Writes the blob (overwriting anything at that path)
5. Upserts the metadata row keyed by attachment id
6. Resolves the public URL

Any failure returns the original pending attachment untouched.
The caller decides what a still-pending attachment means for
the operation it is part of.
"""

import logging
import re
from pathlib import PurePosixPath

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger_sync.models.entry import AttachmentRow
from ledger_sync.schemas.ledger import Attachment
from ledger_sync.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def storage_file_name(attachment: Attachment) -> str:
    """
    File name used inside the blob path.

    Directory parts and unsafe characters are stripped. Without a
    usable name the attachment id plus the MIME subtype is used.
    """
    name = PurePosixPath(attachment.file_name.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    if name:
        return name
    subtype = attachment.file_type.partition("/")[2]
    ext = _UNSAFE_CHARS.sub("", subtype.split("+")[0]) or "png"
    return f"{attachment.id}.{ext}"


def storage_path(account_id: str, entry_id: str, file_name: str) -> str:
    """Deterministic blob path: the same file on the same entry maps to one blob."""
    return f"{account_id}/{entry_id}/{file_name}"


class AttachmentUploader:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        blob_store: BlobStore,
    ):
        self.session_factory = session_factory
        self.blob_store = blob_store

    async def upload(
        self, attachment: Attachment, account_id: str, entry_id: str
    ) -> Attachment:
        """
        Persist a pending attachment. Safe to call repeatedly.

        Returns the persisted attachment on success, the unchanged
        input when it was already persisted or when any step failed.
        """
        if attachment.is_persisted:
            return attachment

        try:
            data = self._decode(attachment)
            file_name = storage_file_name(attachment)
            path = storage_path(account_id, entry_id, file_name)

            await self.blob_store.upload(path, data, attachment.file_type)
            await self._upsert_row(attachment, account_id, entry_id, path, file_name)
            url = self.blob_store.public_url(path)
        except Exception:
            logger.exception(
                f"Failed to upload attachment {attachment.id} "
                f"({attachment.file_name!r}) for entry {entry_id}"
            )
            return attachment

        logger.info(f"Uploaded attachment {attachment.id} to {path}")
        return attachment.model_copy(update={
            "entry_id": entry_id,
            "file_path": path,
            "file_name": file_name,
            "url": url,
            "local_data": None,
        })

    @staticmethod
    def _decode(attachment: Attachment) -> bytes:
        if not attachment.local_data:
            raise ValueError(f"Attachment {attachment.id} has no data to upload")
        return bytes(attachment.local_data)

    async def _upsert_row(
        self,
        attachment: Attachment,
        account_id: str,
        entry_id: str,
        path: str,
        file_name: str,
    ) -> None:
        async with self.session_factory() as session, session.begin():
            # An id owned by another account is never taken over; the
            # insert below then fails on the primary key.
            row = (await session.execute(
                select(AttachmentRow).where(
                    AttachmentRow.id == attachment.id,
                    AttachmentRow.user_id == account_id,
                )
            )).scalar_one_or_none()
            if row is None:
                session.add(AttachmentRow(
                    id=attachment.id,
                    entry_id=entry_id,
                    user_id=account_id,
                    file_path=path,
                    file_name=file_name,
                    file_type=attachment.file_type,
                ))
            else:
                row.entry_id = entry_id
                row.file_path = path
                row.file_name = file_name
                row.file_type = attachment.file_type
