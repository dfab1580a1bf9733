"""Pydantic schemas for client records."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from brokerdesk.schemas.base import BaseResponse

ShortText = Annotated[str | None, Field(max_length=100)]
Text = Annotated[str | None, Field(max_length=255)]
Amount = Annotated[Decimal, Field(ge=0, max_digits=15, decimal_places=2)]


class ClientFields(BaseModel):
    """Optional client fields shared by create and update payloads."""

    introducer_code: ShortText = None
    policy_: ShortText = None
    branch: ShortText = None
    street1: Text = None
    street2: Text = None
    city: ShortText = None
    district: ShortText = None
    province: ShortText = None
    telephone: ShortText = None
    contact_person: Text = None
    email: Text = None
    social_media: Text = None

    policy_type: ShortText = None
    policy_no: ShortText = None
    policy_period_from: ShortText = None
    policy_period_to: ShortText = None
    coverage: Text = None

    sum_insured: Amount | None = None
    basic_premium: Amount | None = None
    srcc_premium: Amount | None = None
    tc_premium: Amount | None = None
    net_premium: Amount | None = None
    stamp_duty: Amount | None = None
    admin_fees: Amount | None = None
    road_safety_fee: Amount | None = None
    policy_fee: Amount | None = None
    vat_fee: Amount | None = None
    total_invoice: Amount | None = None
    debit_note: ShortText = None
    payment_receipt: ShortText = None

    commission_type: ShortText = None
    commission_basic: Amount | None = None
    commission_srcc: Amount | None = None
    commission_tc: Amount | None = None

    sales_rep_id: UUID | None = None
    policies: Annotated[int | None, Field(ge=0)] = None


class ClientCreate(ClientFields):
    id: Annotated[str | None, Field(pattern=r"^[A-Za-z0-9_-]{1,50}$")] = None
    customer_type: Annotated[str, Field(min_length=1, max_length=50)]
    product: Annotated[str, Field(min_length=1, max_length=50)]
    insurance_provider: Annotated[str, Field(min_length=1, max_length=100)]
    client_name: Annotated[str, Field(min_length=1, max_length=255)]
    mobile_no: Annotated[str, Field(min_length=1, max_length=50)]


class ClientUpdate(ClientFields):
    customer_type: Annotated[str | None, Field(min_length=1, max_length=50)] = None
    product: Annotated[str | None, Field(min_length=1, max_length=50)] = None
    insurance_provider: Annotated[str | None, Field(min_length=1, max_length=100)] = None
    client_name: Annotated[str | None, Field(min_length=1, max_length=255)] = None
    mobile_no: Annotated[str | None, Field(min_length=1, max_length=50)] = None


class ClientSearch(BaseModel):
    """Fields matched case-insensitively; any match qualifies (OR)."""

    model_config = ConfigDict(extra="forbid")

    client_name: str | None = None
    mobile_no: str | None = None
    policy_no: str | None = None
    product: str | None = None
    insurance_provider: str | None = None
    customer_type: str | None = None
    email: str | None = None
    city: str | None = None


class ClientResponse(BaseResponse):
    id: str
    introducer_code: str | None = None
    customer_type: str
    product: str
    policy_: str | None = None
    insurance_provider: str
    branch: str | None = None
    client_name: str
    street1: str | None = None
    street2: str | None = None
    city: str | None = None
    district: str | None = None
    province: str | None = None
    telephone: str | None = None
    mobile_no: str
    contact_person: str | None = None
    email: str | None = None
    social_media: str | None = None

    nic_proof: str | None = None
    dob_proof: str | None = None
    business_registration: str | None = None
    svat_proof: str | None = None
    vat_proof: str | None = None
    coverage_proof: str | None = None
    sum_insured_proof: str | None = None
    policy_fee_invoice: str | None = None
    vat_fee_debit_note: str | None = None
    payment_receipt_proof: str | None = None

    policy_type: str | None = None
    policy_no: str | None = None
    policy_period_from: str | None = None
    policy_period_to: str | None = None
    coverage: str | None = None

    sum_insured: Decimal | None = None
    basic_premium: Decimal | None = None
    srcc_premium: Decimal | None = None
    tc_premium: Decimal | None = None
    net_premium: Decimal | None = None
    stamp_duty: Decimal | None = None
    admin_fees: Decimal | None = None
    road_safety_fee: Decimal | None = None
    policy_fee: Decimal | None = None
    vat_fee: Decimal | None = None
    total_invoice: Decimal | None = None
    debit_note: str | None = None
    payment_receipt: str | None = None

    commission_type: str | None = None
    commission_basic: Decimal | None = None
    commission_srcc: Decimal | None = None
    commission_tc: Decimal | None = None

    sales_rep_id: UUID | None = None
    policies: int | None = None
    created_at: datetime
    updated_at: datetime
