"""Tests for local-mode document storage."""

from pathlib import Path

import pytest

from brokerdesk.services.storage import (
    DocumentKey,
    DocumentStorage,
    DocumentType,
    Found,
    NotFound,
    generate_file_name,
    normalize_file_name,
)
from brokerdesk.services.storage_backends import LocalBackend


async def test_upload_then_resolve_returns_identical_bytes(storage, upload_root):
    uploaded = await storage.upload_file(
        "C123", DocumentType.POLICY_FEE_INVOICE, "invoice.pdf", b"%PDF-1.4 data", "application/pdf"
    )

    assert uploaded.path == "C123/policy_fee_invoice/invoice.pdf"
    assert Path(uploaded.url) == upload_root.resolve() / "C123" / "policy_fee_invoice" / "invoice.pdf"

    result = await storage.generate_secure_url("C123", "policy_fee_invoice", "invoice.pdf")
    assert isinstance(result, Found)
    assert not result.is_url
    assert Path(result.value).read_bytes() == b"%PDF-1.4 data"


async def test_resolve_missing_is_not_found(storage):
    result = await storage.generate_secure_url("C123", DocumentType.NIC_PROOF, "missing.png")
    assert result == NotFound("C123/nic_proof/missing.png")


async def test_delete_then_resolve_is_not_found(storage):
    await storage.upload_file("C1", DocumentType.VAT_PROOF, "vat.pdf", b"x", "application/pdf")

    assert await storage.delete_file("C1", DocumentType.VAT_PROOF, "vat.pdf") is True
    assert isinstance(await storage.generate_secure_url("C1", DocumentType.VAT_PROOF, "vat.pdf"), NotFound)


async def test_delete_missing_returns_false(storage):
    assert await storage.delete_file("C1", DocumentType.VAT_PROOF, "never.pdf") is False


async def test_delete_accepts_name_with_path_separators(storage):
    await storage.upload_file("C1", DocumentType.DOB_PROOF, "dob.jpg", b"img", "image/jpeg")

    deleted = await storage.delete_file("C1", DocumentType.DOB_PROOF, "uploads\\C1\\dob_proof\\dob.jpg")

    assert deleted is True


async def test_ensure_container_is_noop(storage):
    await storage.ensure_container()
    assert storage.mode == "local"


def test_backend_creates_root(tmp_path):
    root = tmp_path / "nested" / "uploads"
    LocalBackend(root)
    assert root.is_dir()


@pytest.mark.parametrize(
    ("client_id", "file_name"),
    [
        ("", "a.pdf"),
        ("C1", ""),
        ("C1", "../etc/passwd"),
        ("C1/..", "a.pdf"),
        ("C1", "dir\\a.pdf"),
    ],
)
def test_document_key_rejects_unsafe_segments(client_id, file_name):
    with pytest.raises(ValueError):
        DocumentKey(client_id, DocumentType.NIC_PROOF, file_name)


def test_document_key_rejects_unknown_type():
    with pytest.raises(ValueError):
        DocumentKey("C1", "passport_scan", "a.pdf")


async def test_non_positive_ttl_is_rejected(storage):
    with pytest.raises(ValueError, match="ttl_seconds"):
        await storage.generate_secure_url("C1", DocumentType.NIC_PROOF, "a.pdf", ttl_seconds=0)


def test_generate_file_name_keeps_extension():
    name = generate_file_name("Scan Of Invoice.PDF")
    assert name.endswith(".pdf")
    assert len(name) == 32 + len(".pdf")
    assert generate_file_name("invoice.pdf") != generate_file_name("invoice.pdf")


def test_generate_file_name_without_extension():
    assert "." not in generate_file_name(None)


def test_normalize_file_name():
    assert normalize_file_name("a/b/c.pdf") == "c.pdf"
    assert normalize_file_name("a\\b\\c.pdf") == "c.pdf"
    assert normalize_file_name("c.pdf") == "c.pdf"


def test_storage_wraps_backend(tmp_path):
    storage = DocumentStorage(LocalBackend(tmp_path))
    assert storage.mode == "local"
