from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from carebook.models.booking import PaymentStatus


class VANumber(BaseModel):
    bank: Optional[str] = None
    va_number: Optional[str] = None


class PaymentNotification(BaseModel):
    """Payload POSTed by Midtrans to the notification URL"""
    order_id: str
    transaction_status: str
    status_code: str
    gross_amount: str
    signature_key: str
    fraud_status: Optional[str] = None
    payment_type: Optional[str] = None
    transaction_id: Optional[str] = None
    transaction_time: Optional[str] = None
    va_numbers: List[VANumber] = Field(default_factory=list)
    bank: Optional[str] = None

    class Config:
        extra = "allow"


class CheckoutResponse(BaseModel):
    payment_id: str
    order_id: str
    owner_id: str
    amount: int
    status: PaymentStatus
    snap_token: Optional[str] = None
    snap_redirect_url: Optional[str] = None
    expiry_time: Optional[datetime] = None


class PaymentResponse(BaseModel):
    id: str
    kind: str
    owner_id: str
    order_id: str
    amount: int
    status: PaymentStatus
    payment_type: Optional[str] = None
    transaction_id: Optional[str] = None
    transaction_status: Optional[str] = None
    transaction_time: Optional[datetime] = None
    va_number: Optional[str] = None
    bank: Optional[str] = None
    snap_token: Optional[str] = None
    snap_redirect_url: Optional[str] = None
    expiry_time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "PaymentResponse":
        return cls(
            id=record.id,
            kind=record.kind,
            owner_id=record.owner_id,
            order_id=record.gateway_order_id,
            amount=record.amount,
            status=record.status,
            payment_type=record.payment_type,
            transaction_id=record.transaction_id,
            transaction_status=record.transaction_status,
            transaction_time=record.transaction_time,
            va_number=record.va_number,
            bank=record.bank,
            snap_token=record.snap_token,
            snap_redirect_url=record.snap_redirect_url,
            expiry_time=record.expiry_time,
            created_at=record.created_at,
        )


class NotificationResult(BaseModel):
    order_id: str
    kind: str
    payment_status: PaymentStatus
    owner_status: str
