"""
Integrations - collaborators the ledger consumes but does not own

Blob storage, the invoice registry and the supplier directory are typed
as Protocols; the concrete classes here are the ones the CLI wires up.
"""

from site_ledger.integrations.blob_store import (
    Attachment,
    AttachmentUpload,
    BlobStore,
    LocalBlobStore,
    StoredBlob,
)
from site_ledger.integrations.invoice_registry import (
    HttpInvoiceRegistry,
    InvoiceValidator,
    ValidationRequest,
    ValidationResult,
)
from site_ledger.integrations.supplier_directory import (
    StaticSupplierDirectory,
    SupplierDirectory,
    SupplierInfo,
)

__all__ = [
    "Attachment",
    "AttachmentUpload",
    "BlobStore",
    "LocalBlobStore",
    "StoredBlob",
    "HttpInvoiceRegistry",
    "InvoiceValidator",
    "ValidationRequest",
    "ValidationResult",
    "StaticSupplierDirectory",
    "SupplierDirectory",
    "SupplierInfo",
]
