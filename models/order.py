"""
Order related data models
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Dict, Any
from enum import Enum


class OrderStatus(Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderType(Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"


class OrderSource(Enum):
    ONLINE = "online"
    KIOSK = "kiosk"
    POS = "pos"


class ActorRole(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    STAFF = "staff"
    KIOSK = "kiosk"


@dataclass
class Actor:
    """Authenticated user acting on the system"""
    user_id: Optional[str]
    role: ActorRole = ActorRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role is ActorRole.ADMIN

    @property
    def is_staff(self) -> bool:
        """Admins and staff see every order"""
        return self.role in (ActorRole.ADMIN, ActorRole.STAFF)


@dataclass
class CustomerInfo:
    """Customer information"""
    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""


@dataclass
class OrderLine:
    """Order line data model"""
    id: str
    order_id: str
    food_item_id: str
    quantity: int
    unit_price: int
    size_id: Optional[str] = None
    note: Optional[str] = None

    @property
    def total_price(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "order_id": self.order_id,
            "food_item_id": self.food_item_id,
            "size_id": self.size_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "note": self.note
        }


@dataclass
class Order:
    """Order data model"""
    id: str
    user_id: Optional[str]
    customer_name: str
    customer_phone: str
    order_type: OrderType
    payment_method: PaymentMethod
    status: OrderStatus
    total_amount: int
    source: OrderSource
    created_at: datetime
    updated_at: Optional[datetime] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    notes: Optional[str] = None
    lines: List[OrderLine] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "customer_address": self.customer_address,
            "order_type": self.order_type.value,
            "payment_method": self.payment_method.value,
            "status": self.status.value,
            "total_amount": self.total_amount,
            "source": self.source.value,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "lines": [line.to_dict() for line in self.lines]
        }


@dataclass
class CancellationRecord:
    """Cancellation record written by the cancel procedure"""
    order_id: str
    reason: str
    cancelled_by: Optional[str]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "order_id": self.order_id,
            "reason": self.reason,
            "cancelled_by": self.cancelled_by,
            "created_at": self.created_at.isoformat()
        }


@dataclass
class StatusHistoryEntry:
    """One status change of an order"""
    order_id: str
    status: OrderStatus
    changed_by: Optional[str]
    notes: Optional[str]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "order_id": self.order_id,
            "status": self.status.value,
            "changed_by": self.changed_by,
            "notes": self.notes,
            "created_at": self.created_at.isoformat()
        }
