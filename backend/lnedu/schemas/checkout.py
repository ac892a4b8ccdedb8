from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from lnedu.models.enums import OrderStatus, PaymentMethod, PaymentStatus

class CheckoutItemIn(BaseModel):
    id: int
    type: Literal["paper", "course", "ebook"]
    # título/preço vêm do catálogo; os do cliente são ignorados
    title: str | None = None
    description: str | None = None
    price: int | None = None

class CustomerIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    cpfCnpj: str = Field(min_length=11, max_length=18)
    phone: str | None = None
    mobilePhone: str | None = None
    postalCode: str | None = None
    address: str | None = None
    addressNumber: str | None = None
    province: str | None = None

class CheckoutIn(BaseModel):
    items: list[CheckoutItemIn] = Field(min_length=1)
    customer: CustomerIn
    paymentMethod: PaymentMethod

class CreditCardIn(BaseModel):
    holderName: str
    number: str
    expiryMonth: str
    expiryYear: str
    ccv: str

class CourseCheckoutIn(BaseModel):
    courseId: int
    paymentMethod: Literal["CREDIT_CARD", "BOLETO", "PIX"]
    customer: CustomerIn
    creditCard: CreditCardIn | None = None
    installments: int | None = Field(default=None, ge=1, le=12)
    # cadastro na hora para quem ainda não tem conta
    password: str | None = Field(default=None, min_length=6)

class OrderStatusIn(BaseModel):
    status: OrderStatus | None = None
    paymentStatus: PaymentStatus | None = None

class RefundIn(BaseModel):
    description: str | None = None

class PaymentWebhookIn(BaseModel):
    orderId: str
    status: Literal["paid", "failed", "canceled"]
    paymentMethod: str
    timestamp: str | None = None
    signature: str | None = None
