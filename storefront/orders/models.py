"""
Modèles de la feature 'orders'.
- OrderStatus / PaymentStatus: valeurs persistées dans la colonne status / payment_status.
- CustomerInfo: identité client copiée dans la commande (pas une référence vers le compte).
- LineItem / Order: instantané immuable des lignes et du total.
- GatewayEvent: issue d'un paiement rapportée par la passerelle (seule source faisant foi).
  Porte aussi montant, devise, moyen et heure du paiement pour la piste d'audit.
"""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from storefront.utils.validators import sanitize_input, validate_name, validate_phone, validate_pincode


class OrderStatus(str, Enum):
    PAYMENT_PENDING = "payment_pending"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    PENDING_REVIEW = "pending_review"
    DELIVERED = "delivered"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class GatewayOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class CustomerInfo(BaseModel):
    name: str
    email: EmailStr
    phone: str
    address: str = Field(min_length=5, max_length=300)
    pincode: str
    city: Optional[str] = None
    state: Optional[str] = None

    @field_validator("name")
    def _name(cls, v: str) -> str:
        return validate_name(v)

    @field_validator("phone")
    def _phone(cls, v: str) -> str:
        return validate_phone(v)

    @field_validator("pincode")
    def _pincode(cls, v: str) -> str:
        return validate_pincode(v)

    @field_validator("address", "city", "state")
    def _clean(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_input(v) if v is not None else v

    def shipping_details(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "pincode": self.pincode,
            "city": self.city,
            "state": self.state,
        }


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_ref: str
    title: str
    unit_price: Decimal
    quantity: int = Field(ge=1)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_row(self) -> Dict[str, Any]:
        return {
            "product_ref": self.product_ref,
            "title": self.title,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
        }


class Order(BaseModel):
    id: str
    customer_id: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    shipping_address: Dict[str, Any] = Field(default_factory=dict)
    line_items: List[LineItem]
    total_amount: Decimal
    currency: str
    status: OrderStatus = OrderStatus.PAYMENT_PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    gateway_order_reference: Optional[str] = None
    payment_reference: Optional[str] = None
    # Ce que la passerelle a réellement encaissé (renseigné à la confirmation)
    payment_amount: Optional[Decimal] = None
    payment_currency: Optional[str] = None
    payment_method: Optional[str] = None
    payment_time: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        data = dict(row)
        data["line_items"] = [LineItem(**li) for li in (row.get("line_items") or [])]
        data["shipping_address"] = row.get("shipping_address") or {}
        return cls(**data)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "shipping_address": self.shipping_address,
            "line_items": [li.to_row() for li in self.line_items],
            "total_amount": str(self.total_amount),
            "currency": self.currency,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "gateway_order_reference": self.gateway_order_reference,
            "payment_reference": self.payment_reference,
            "payment_amount": str(self.payment_amount) if self.payment_amount is not None else None,
            "payment_currency": self.payment_currency,
            "payment_method": self.payment_method,
            "payment_time": self.payment_time.isoformat() if self.payment_time else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def as_public_dict(self) -> Dict[str, Any]:
        data = self.to_row()
        data["line_items"] = [
            {**li.to_row(), "line_total": str(li.line_total)} for li in self.line_items
        ]
        return data


class GatewayEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    gateway_order_reference: str
    outcome: GatewayOutcome
    payment_reference: Optional[str] = None
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    amount_total: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None

    def payment_details(self) -> Dict[str, Any]:
        """Colonnes payment_* écrites avec la confirmation (seulement celles connues)."""
        details = {
            "payment_amount": str(self.amount_total) if self.amount_total is not None else None,
            "payment_currency": self.currency,
            "payment_method": self.payment_method,
            "payment_time": self.paid_at.isoformat() if self.paid_at else None,
        }
        return {k: v for k, v in details.items() if v is not None}
