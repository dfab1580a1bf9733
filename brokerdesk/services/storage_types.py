"""Document keys and storage result types shared by the backends."""

from dataclasses import dataclass
from enum import Enum


class DocumentType(str, Enum):
    NIC_PROOF = "nic_proof"
    DOB_PROOF = "dob_proof"
    BUSINESS_REGISTRATION = "business_registration"
    SVAT_PROOF = "svat_proof"
    VAT_PROOF = "vat_proof"
    COVERAGE_PROOF = "coverage_proof"
    SUM_INSURED_PROOF = "sum_insured_proof"
    POLICY_FEE_INVOICE = "policy_fee_invoice"
    VAT_FEE_DEBIT_NOTE = "vat_fee_debit_note"
    PAYMENT_RECEIPT_PROOF = "payment_receipt_proof"


class StorageError(Exception):
    """Raised when storage operations fail."""


def _check_segment(name: str, value: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"{name} must not be empty")
    if "/" in value or "\\" in value or ".." in value:
        raise ValueError(f"{name} must not contain path separators or '..': {value!r}")


@dataclass(frozen=True)
class DocumentKey:
    """Logical ``client_id/document_type/file_name`` identity of a document."""

    client_id: str
    document_type: DocumentType
    file_name: str

    def __post_init__(self) -> None:
        _check_segment("client_id", self.client_id)
        _check_segment("file_name", self.file_name)
        # Accept plain strings and coerce; unknown values raise ValueError
        object.__setattr__(self, "document_type", DocumentType(self.document_type))

    @property
    def prefix(self) -> str:
        return f"{self.client_id}/{self.document_type.value}"

    @property
    def path(self) -> str:
        return f"{self.prefix}/{self.file_name}"

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class UploadedDocument:
    url: str
    path: str


@dataclass(frozen=True)
class Found:
    """A readable location: an absolute URL (cloud) or a filesystem path (local)."""

    value: str

    @property
    def is_url(self) -> bool:
        return self.value.startswith(("http://", "https://"))


@dataclass(frozen=True)
class NotFound:
    key: str


@dataclass(frozen=True)
class Failed:
    detail: str
    error: BaseException | None = None


Resolution = Found | NotFound | Failed
