"""
Types des commandes: statuts, lignes figées au moment de la commande, mapping ligne DB ↔ objet.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass
class OrderLine:
    variant_id: str
    product_id: str
    quantity: int
    unit_price_at_order: int

    @property
    def line_total(self) -> int:
        return self.quantity * self.unit_price_at_order

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant_id": self.variant_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_at_order": self.unit_price_at_order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderLine":
        return cls(
            variant_id=str(data.get("variant_id") or ""),
            product_id=str(data.get("product_id") or ""),
            quantity=int(data.get("quantity") or 0),
            unit_price_at_order=int(data.get("unit_price_at_order") or 0),
        )


@dataclass
class Order:
    id: str
    user_id: str
    line_items: List[OrderLine]
    subtotal: int
    total: int
    status: OrderStatus
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None
    order_number: str = ""
    shipping: int = 0
    tax: int = 0
    currency: str = "KES"
    shipping_address: Dict[str, Any] = field(default_factory=dict)
    payment_error: Optional[str] = None
    paid_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_payment_settled(self) -> bool:
        # paid / failed / refunded: plus aucune vérification n'a d'effet
        return self.payment_status != PaymentStatus.PENDING

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        return cls(
            id=str(row.get("id")),
            user_id=str(row.get("user_id") or ""),
            line_items=[OrderLine.from_dict(li) for li in (row.get("line_items") or [])],
            subtotal=int(row.get("subtotal") or 0),
            total=int(row.get("total") or 0),
            status=OrderStatus(row.get("status") or "pending"),
            payment_status=PaymentStatus(row.get("payment_status") or "pending"),
            payment_reference=row.get("payment_reference") or None,
            order_number=str(row.get("order_number") or ""),
            shipping=int(row.get("shipping") or 0),
            tax=int(row.get("tax") or 0),
            currency=str(row.get("currency") or "KES"),
            shipping_address=row.get("shipping_address") or {},
            payment_error=row.get("payment_error") or None,
            paid_at=row.get("paid_at") or None,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "line_items": [li.to_dict() for li in self.line_items],
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "tax": self.tax,
            "total": self.total,
            "currency": self.currency,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_reference": self.payment_reference,
            "payment_error": self.payment_error,
            "paid_at": self.paid_at,
            "shipping_address": self.shipping_address,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
