"""
Tests for external collaborators: invoice registry client, blob store and
supplier directory
"""

import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from site_ledger.integrations import (
    AttachmentUpload,
    HttpInvoiceRegistry,
    LocalBlobStore,
    StaticSupplierDirectory,
    SupplierInfo,
    ValidationRequest,
)
from site_ledger.integrations.blob_store import StoredBlob, discard_attachments, store_uploads
from site_ledger.kernel.errors import ExternalServiceError

REQUEST = ValidationRequest(
    number="INV-0001",
    amount=Decimal("1000.00"),
    tax_rate=Decimal("13"),
    issue_date=date(2025, 1, 13),
    supplier_id="sup-acme",
)


def registry(handler) -> HttpInvoiceRegistry:
    return HttpInvoiceRegistry(
        "https://registry.test/api/", api_key="secret", transport=httpx.MockTransport(handler)
    )


# =============================================================================
# Invoice registry
# =============================================================================


class TestHttpInvoiceRegistry:
    def test_valid_invoice(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"valid": True, "message": "genuine"})

        with registry(handler) as client:
            result = client.validate(REQUEST)

        assert result.valid is True
        assert result.message == "genuine"
        [request] = seen
        assert request.url == "https://registry.test/api/invoices/validate"
        assert request.headers["Authorization"] == "Bearer secret"
        assert json.loads(request.content) == {
            "number": "INV-0001",
            "amount": "1000.00",
            "tax_rate": "13",
            "issue_date": "2025-01-13",
            "supplier_id": "sup-acme",
        }

    def test_invalid_invoice(self) -> None:
        client = registry(lambda request: httpx.Response(200, json={"valid": False, "message": "mismatch"}))
        result = client.validate(REQUEST)
        assert result.valid is False
        assert result.message == "mismatch"
        client.close()

    def test_http_error(self) -> None:
        client = registry(lambda request: httpx.Response(503))
        with pytest.raises(ExternalServiceError) as exc_info:
            client.validate(REQUEST)
        assert "HTTP 503" in str(exc_info.value)
        assert exc_info.value.service == "invoice registry"

    def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ExternalServiceError):
            registry(handler).validate(REQUEST)

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>"),
            httpx.Response(200, json={"verdict": "ok"}),
        ],
    )
    def test_malformed_body(self, response: httpx.Response) -> None:
        with pytest.raises(ExternalServiceError) as exc_info:
            registry(lambda request: response).validate(REQUEST)
        assert "malformed" in str(exc_info.value)


# =============================================================================
# Blob store
# =============================================================================


class TestLocalBlobStore:
    def test_store_and_delete(self, tmp_path: Path) -> None:
        store = LocalBlobStore(tmp_path / "blobs")

        blob = store.store(b"hello", "text/plain", "costs")

        assert blob.key.startswith("costs/")
        assert blob.url.startswith("file://")
        assert (store.root / blob.key).read_bytes() == b"hello"

        store.delete(blob.key)
        assert not (store.root / blob.key).exists()
        store.delete(blob.key)

    def test_store_uploads(self, tmp_path: Path) -> None:
        store = LocalBlobStore(tmp_path)
        uploads = [
            AttachmentUpload(filename="a.pdf", content_type="application/pdf", data=b"1"),
            AttachmentUpload(filename="b.png", content_type="image/png", data=b"22"),
        ]

        attachments = store_uploads(store, uploads, "payments")

        assert [(a.filename, a.size) for a in attachments] == [("a.pdf", 1), ("b.png", 2)]
        discard_attachments(store, attachments)
        assert list((tmp_path / "payments").iterdir()) == []

    def test_store_uploads_is_all_or_nothing(self, tmp_path: Path) -> None:
        class FailingSecond(LocalBlobStore):
            calls = 0

            def store(self, data: bytes, content_type: str, folder: str) -> StoredBlob:
                self.calls += 1
                if self.calls == 2:
                    raise ExternalServiceError("blob store", "disk full")
                return super().store(data, content_type, folder)

        store = FailingSecond(tmp_path)
        uploads = [AttachmentUpload(filename=f"{i}.pdf", data=b"x") for i in range(3)]

        with pytest.raises(ExternalServiceError):
            store_uploads(store, uploads, "costs")
        assert list((tmp_path / "costs").iterdir()) == []

    def test_discard_keeps_going_after_failures(self, tmp_path: Path) -> None:
        deleted: list[str] = []

        class Flaky(LocalBlobStore):
            def delete(self, key: str) -> None:
                deleted.append(key)
                if len(deleted) == 1:
                    raise ExternalServiceError("blob store", "busy")
                super().delete(key)

        store = Flaky(tmp_path)
        attachments = store_uploads(
            store, [AttachmentUpload(filename=f"{i}", data=b"x") for i in range(2)], "costs"
        )

        discard_attachments(store, attachments)

        assert deleted == [a.key for a in attachments]


# =============================================================================
# Supplier directory
# =============================================================================


class TestStaticSupplierDirectory:
    def test_lookup(self) -> None:
        directory = StaticSupplierDirectory([SupplierInfo(supplier_id="s-1", name="Acme")])

        assert directory.get("s-1").name == "Acme"
        assert directory.get("s-2") is None

        directory.add(SupplierInfo(supplier_id="s-2", is_blacklisted=True))
        assert directory.get("s-2").is_blacklisted is True
        assert len(directory) == 2

    def test_from_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "suppliers.json"
        path.write_text(
            json.dumps(
                [
                    {"supplier_id": "s-1", "name": "Acme Steel"},
                    {"supplier_id": "s-2", "name": "Shady", "is_blacklisted": True},
                ]
            ),
            encoding="utf-8",
        )

        directory = StaticSupplierDirectory.from_json_file(path)

        assert len(directory) == 2
        assert directory.get("s-1").is_blacklisted is False
        assert directory.get("s-2").is_blacklisted is True
