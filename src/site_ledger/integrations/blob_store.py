"""
Blob store - where cost attachments, invoice images and payment documents live

The ledger only keeps references (url + key) in its events. Uploads are
stored before the ledger write and deleted again if that write fails.
"""

from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from site_ledger.kernel.errors import ExternalServiceError
from site_ledger.kernel.ids import generate_id
from site_ledger.kernel.logging import get_logger

logger = get_logger(__name__)


class StoredBlob(BaseModel):
    """Location of a stored blob"""

    url: str
    key: str


class AttachmentUpload(BaseModel):
    """File handed to the ledger alongside a cost, invoice or payment"""

    filename: str = Field(..., min_length=1)
    content_type: str = "application/octet-stream"
    data: bytes


class Attachment(BaseModel):
    """Reference to a stored upload, as recorded in events"""

    filename: str
    content_type: str
    size: int = Field(ge=0)
    url: str
    key: str


class BlobStore(Protocol):
    """Opaque blob storage"""

    def store(self, data: bytes, content_type: str, folder: str) -> StoredBlob:
        ...

    def delete(self, key: str) -> None:
        ...


class LocalBlobStore:
    """
    Filesystem blob store

    Blobs land in ``root/<folder>/<generated id>``; the key is the path
    relative to root and the url is a file:// url.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def store(self, data: bytes, content_type: str, folder: str) -> StoredBlob:
        key = f"{folder.strip('/')}/{generate_id()}"
        path = self.root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise ExternalServiceError("blob store", str(e)) from e
        logger.debug("Blob stored", key=key, size=len(data), content_type=content_type)
        return StoredBlob(url=path.resolve().as_uri(), key=key)

    def delete(self, key: str) -> None:
        path = self.root / key
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise ExternalServiceError("blob store", str(e)) from e


def store_uploads(
    blob_store: BlobStore, uploads: list[AttachmentUpload], folder: str
) -> list[Attachment]:
    """
    Store every upload, all or nothing

    If one upload fails, the ones already stored are deleted before the
    error propagates.
    """
    attachments: list[Attachment] = []
    try:
        for upload in uploads:
            blob = blob_store.store(upload.data, upload.content_type, folder)
            attachments.append(
                Attachment(
                    filename=upload.filename,
                    content_type=upload.content_type,
                    size=len(upload.data),
                    url=blob.url,
                    key=blob.key,
                )
            )
    except Exception:
        discard_attachments(blob_store, attachments)
        raise
    return attachments


def discard_attachments(blob_store: BlobStore, attachments: list[Attachment]) -> None:
    """
    Compensate for a failed ledger write by deleting its stored uploads

    Failures to delete are logged, not raised; the original error is what
    the caller needs to see.
    """
    for attachment in attachments:
        try:
            blob_store.delete(attachment.key)
        except Exception as e:
            logger.error(
                "Failed to delete orphaned blob",
                key=attachment.key,
                error=str(e),
            )
