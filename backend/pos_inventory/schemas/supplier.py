"""Supplier schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class SupplierContact(BaseModel):
    person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    telegram: Optional[str] = None


class SupplierAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


class SupplierBase(BaseModel):
    """Base supplier schema."""

    code: Optional[str] = None
    company_name: Optional[str] = None
    tax_id: Optional[str] = None
    categories: Optional[list[str]] = None
    contact: Optional[SupplierContact] = None
    address: Optional[SupplierAddress] = None
    currency: Optional[str] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    metadata: Optional[dict] = None


class SupplierCreate(SupplierBase):
    """Supplier creation schema."""

    name: Optional[str] = None


class SupplierUpdate(SupplierBase):
    """Supplier update schema."""

    name: Optional[str] = None
    is_active: Optional[bool] = None


class SupplierResponse(BaseModel):
    """Supplier response schema."""

    id: int
    name: str
    code: Optional[str] = None
    company_name: Optional[str] = None
    tax_id: Optional[str] = None
    categories: Optional[list[str]] = None
    contact: dict
    address: dict
    currency: str
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    meta: Optional[dict] = Field(default=None, serialization_alias="metadata")
    balance: Decimal
    total_purchases: Decimal
    total_payments: Decimal
    last_purchase_date: Optional[datetime] = None
    is_active: bool
    archived_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PurchaseRequest(BaseModel):
    """Goods received from a supplier."""

    item_id: int
    warehouse_id: Optional[int] = None
    quantity: Optional[Decimal] = None
    unit_cost: Optional[Decimal] = None
    currency: Optional[str] = None
    note: Optional[str] = None
    reference: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


class ReturnRequest(BaseModel):
    """Goods sent back to a supplier; ``unit_cost`` defaults to the last purchase price."""

    item_id: int
    warehouse_id: Optional[int] = None
    quantity: Optional[Decimal] = None
    unit_cost: Optional[Decimal] = None
    currency: Optional[str] = None
    note: Optional[str] = None
    reference: Optional[str] = None


class PaymentRequest(BaseModel):
    amount: Optional[Decimal] = None
    method: str = "cash"
    reference: Optional[str] = None
    note: Optional[str] = None
    paid_at: Optional[datetime] = None


class InvoiceAttachRequest(BaseModel):
    number: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    issued_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    file_url: Optional[str] = None
    note: Optional[str] = None


class PriceHistoryResponse(BaseModel):
    id: int
    item_id: Optional[int] = None
    item_name: Optional[str] = None
    unit: Optional[str] = None
    warehouse_id: Optional[int] = None
    unit_cost: Decimal
    quantity: Decimal
    total_cost: Decimal
    currency: Optional[str] = None
    note: Optional[str] = None
    reference: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    recorded_by: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: int
    amount: Decimal
    method: str
    reference: Optional[str] = None
    note: Optional[str] = None
    recorded_by: Optional[int] = None
    paid_at: datetime

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: int
    number: Optional[str] = None
    amount: Decimal
    currency: Optional[str] = None
    issued_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    file_url: Optional[str] = None
    note: Optional[str] = None
    status: str
    uploaded_by: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}
