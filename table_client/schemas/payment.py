from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentFamily(PyEnum):
    WALLET = "promptpay"  # QR для банковского приложения
    STAFF = "staff"  # QR, который показывают официанту


class PaymentCodeStatus(PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PaymentCodeRequest(BaseModel):
    cart_id: int
    location_id: Any
    amount: Decimal = Field(..., ge=0)
    order_type: str = "dine_in"


class PaymentCodeRecord(BaseModel):
    """Платёж по коду, ожидающий подтверждения"""
    token: str
    family: PaymentFamily = PaymentFamily.WALLET
    payment_id: Optional[int] = None
    client_secret: Optional[str] = None
    qr_type: Optional[str] = None
    qr_code_url: Optional[str] = None
    instruction_url: Optional[str] = None
    amount: Decimal = Decimal("0")
    currency: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None  # когда клиент получил код

    @property
    def is_staff(self) -> bool:
        return self.family is PaymentFamily.STAFF or self.qr_type == "staff"


class PaymentStatusResult(BaseModel):
    status: PaymentCodeStatus
    payment_id: Optional[int] = None
    stripe_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class PaymentMethod(BaseModel):
    id: int
    name: str
    slug: str
    logo: Optional[str] = None
    logo_url: Optional[str] = None
    payment_account_id: Optional[int] = None
    note: Optional[str] = None
    is_enable: int = 1
    is_default: int = 0
    payment_account: Optional[Dict[str, Any]] = None

    @property
    def family(self) -> Optional[PaymentFamily]:
        """Семейство кодового платежа или None для ручной оплаты"""
        if self.slug == STAFF_METHOD_SLUG:
            return PaymentFamily.STAFF
        if self.slug in WALLET_METHOD_SLUGS:
            return PaymentFamily.WALLET
        return None


STAFF_METHOD_ID = -1
STAFF_METHOD_SLUG = "staff_qr"
WALLET_METHOD_SLUGS = ("stripe", "promptpay")

STAFF_PAYMENT_METHOD = PaymentMethod(
    id=STAFF_METHOD_ID,
    name="Pay to Staff",
    slug=STAFF_METHOD_SLUG,
    note="Show the QR code to a staff member",
    is_enable=1,
    is_default=0,
)


class ManualPaymentRequest(BaseModel):
    cart_id: int
    location_id: Any
    payment_method_id: int
    amount: Decimal = Field(..., ge=0)
    order_type: str = "dine_in"


class ManualPaymentAck(BaseModel):
    """Ответ на отправку чека ручной оплаты"""
    order_token: Optional[str] = None
    order_id: Optional[int] = None
    order_number: Optional[str] = None
    message: Optional[str] = None

    model_config = ConfigDict(extra="allow")
