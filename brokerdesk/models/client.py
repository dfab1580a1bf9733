"""Client model: customer, policy and premium details plus document paths."""

import uuid
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from brokerdesk.database import Base
from brokerdesk.models.base import TimestampMixin

Money = Numeric(15, 2)


def generate_client_id() -> str:
    """Client ids look like ``C1a2b3c4d``."""
    return f"C{uuid.uuid4().hex[:8]}"


class Client(Base, TimestampMixin):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=generate_client_id)

    # Customer
    introducer_code: Mapped[str | None] = mapped_column(String(50))
    customer_type: Mapped[str] = mapped_column(String(50), nullable=False)
    product: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    policy_: Mapped[str | None] = mapped_column(String(100))
    insurance_provider: Mapped[str] = mapped_column(String(100), nullable=False)
    branch: Mapped[str | None] = mapped_column(String(100))
    client_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    street1: Mapped[str | None] = mapped_column(String(255))
    street2: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str | None] = mapped_column(String(100))
    district: Mapped[str | None] = mapped_column(String(100))
    province: Mapped[str | None] = mapped_column(String(100))
    telephone: Mapped[str | None] = mapped_column(String(50))
    mobile_no: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    contact_person: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255))
    social_media: Mapped[str | None] = mapped_column(String(255))

    # Stored document paths, one column per DocumentType value
    nic_proof: Mapped[str | None] = mapped_column(String(255))
    dob_proof: Mapped[str | None] = mapped_column(String(255))
    business_registration: Mapped[str | None] = mapped_column(String(255))
    svat_proof: Mapped[str | None] = mapped_column(String(255))
    vat_proof: Mapped[str | None] = mapped_column(String(255))
    coverage_proof: Mapped[str | None] = mapped_column(String(255))
    sum_insured_proof: Mapped[str | None] = mapped_column(String(255))
    policy_fee_invoice: Mapped[str | None] = mapped_column(String(255))
    vat_fee_debit_note: Mapped[str | None] = mapped_column(String(255))
    payment_receipt_proof: Mapped[str | None] = mapped_column(String(255))

    # Policy
    policy_type: Mapped[str | None] = mapped_column(String(100))
    policy_no: Mapped[str | None] = mapped_column(String(100), index=True)
    policy_period_from: Mapped[str | None] = mapped_column(String(50))
    policy_period_to: Mapped[str | None] = mapped_column(String(50))
    coverage: Mapped[str | None] = mapped_column(String(255))

    # Premiums
    sum_insured: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    basic_premium: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    srcc_premium: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    tc_premium: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    net_premium: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    stamp_duty: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    admin_fees: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    road_safety_fee: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    policy_fee: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    vat_fee: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    total_invoice: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    debit_note: Mapped[str | None] = mapped_column(String(100))
    payment_receipt: Mapped[str | None] = mapped_column(String(100))

    # Commission
    commission_type: Mapped[str | None] = mapped_column(String(50))
    commission_basic: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    commission_srcc: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    commission_tc: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))

    sales_rep_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    policies: Mapped[int] = mapped_column(Integer, default=0)
