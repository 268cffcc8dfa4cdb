from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


METAL_TYPES = ("gold", "silver", "platinum")
PAYMENT_METHODS = ("cash", "card", "mixed", "metal")
MOVEMENT_STATUSES = ("pending", "completed", "cancelled")
METAL_TRANSACTION_TYPES = ("purchase", "sale")
ROLES = ("admin", "manager", "cashier")


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _opt_float(value) -> Optional[float]:
    return float(value) if value is not None else None


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    category: str
    in_stock: int
    weight: Optional[float] = None
    metal: Optional[str] = None
    store_location: Optional[str] = None
    description: Optional[str] = None
    supplier: Optional[str] = None
    cost_price: Optional[float] = None
    created_at: Optional[str] = None
    created_by: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "category": self.category,
            "inStock": self.in_stock,
            "weight": self.weight,
            "metal": self.metal,
            "storeLocation": self.store_location,
            "description": self.description,
            "supplier": self.supplier,
            "costPrice": self.cost_price,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            price=float(data.get("price", 0)),
            category=str(data.get("category") or ""),
            in_stock=int(data.get("inStock", 0)),
            weight=_opt_float(data.get("weight")),
            metal=data.get("metal") or None,
            store_location=data.get("storeLocation") or None,
            description=data.get("description"),
            supplier=data.get("supplier"),
            cost_price=_opt_float(data.get("costPrice")),
            created_at=data.get("createdAt"),
            created_by=data.get("createdBy"),
            updated_at=data.get("updatedAt"),
        )


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    phone: str
    discount: float = 0.0
    total_purchases: float = 0.0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    local: bool = False

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "discount": self.discount,
            "totalPurchases": self.total_purchases,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.local:
            out["local"] = True
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "Customer":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            phone=str(data.get("phone", "")),
            discount=float(data.get("discount") or 0),
            total_purchases=float(data.get("totalPurchases") or 0),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            local=bool(data.get("local", False)),
        )


@dataclass(frozen=True)
class SaleItem:
    product_id: str
    product_name: str
    quantity: int
    price: float
    discount: float = 0.0

    @property
    def line_total(self) -> float:
        return self.price * self.quantity * (1 - self.discount / 100)

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "price": self.price,
            "discount": self.discount,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SaleItem":
        return cls(
            product_id=str(data["productId"]),
            product_name=str(data.get("productName") or ""),
            quantity=int(data["quantity"]),
            price=float(data["price"]),
            discount=float(data.get("discount") or 0),
        )


@dataclass(frozen=True)
class MetalLotRecord:
    metal_type: str
    purity: int
    weight: float
    price_per_gram: float

    @property
    def value(self) -> float:
        return self.weight * self.price_per_gram

    def to_dict(self) -> dict:
        return {
            "type": self.metal_type,
            "purity": self.purity,
            "weight": self.weight,
            "pricePerGram": self.price_per_gram,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MetalLotRecord":
        return cls(
            metal_type=str(data["type"]),
            purity=int(data["purity"]),
            weight=float(data["weight"]),
            price_per_gram=float(data["pricePerGram"]),
        )


@dataclass(frozen=True)
class PaymentDetails:
    cash: float
    card: float
    currency: str
    exchange_rate: float
    metal: Optional[tuple[MetalLotRecord, ...]] = None

    def to_dict(self) -> dict:
        out = {
            "cash": self.cash,
            "card": self.card,
            "currency": self.currency,
            "exchangeRate": self.exchange_rate,
        }
        if self.metal is not None:
            out["metal"] = [lot.to_dict() for lot in self.metal]
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentDetails":
        metal = data.get("metal")
        return cls(
            cash=float(data.get("cash") or 0),
            card=float(data.get("card") or 0),
            currency=str(data.get("currency") or ""),
            exchange_rate=float(data.get("exchangeRate") or 1),
            metal=tuple(MetalLotRecord.from_dict(m) for m in metal) if metal is not None else None,
        )


@dataclass(frozen=True)
class Sale:
    id: str
    timestamp: str
    items: tuple[SaleItem, ...]
    subtotal: float
    total: float
    payment_method: str
    payment_details: PaymentDetails
    change: float
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    cashier_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "items": [it.to_dict() for it in self.items],
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "subtotal": self.subtotal,
            "total": self.total,
            "paymentMethod": self.payment_method,
            "paymentDetails": self.payment_details.to_dict(),
            "change": self.change,
            "cashierId": self.cashier_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        return cls(
            id=str(data["id"]),
            timestamp=str(data["timestamp"]),
            items=tuple(SaleItem.from_dict(it) for it in data.get("items", [])),
            subtotal=float(data["subtotal"]),
            total=float(data["total"]),
            payment_method=str(data["paymentMethod"]),
            payment_details=PaymentDetails.from_dict(data.get("paymentDetails") or {}),
            change=float(data.get("change") or 0),
            customer_id=data.get("customerId"),
            customer_name=data.get("customerName"),
            cashier_id=data.get("cashierId"),
        )


@dataclass(frozen=True)
class StockMovement:
    id: str
    product_id: str
    product_name: str
    from_location: str
    to_location: str
    quantity: int
    reason: str
    timestamp: str
    performed_by: Optional[str]
    status: str = "pending"
    updated_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "fromLocation": self.from_location,
            "toLocation": self.to_location,
            "quantity": self.quantity,
            "reason": self.reason,
            "timestamp": self.timestamp,
            "performedBy": self.performed_by,
            "status": self.status,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StockMovement":
        return cls(
            id=str(data["id"]),
            product_id=str(data["productId"]),
            product_name=str(data.get("productName") or ""),
            from_location=str(data["fromLocation"]),
            to_location=str(data["toLocation"]),
            quantity=int(data["quantity"]),
            reason=str(data.get("reason") or ""),
            timestamp=str(data["timestamp"]),
            performed_by=data.get("performedBy"),
            status=str(data.get("status") or "pending"),
            updated_at=data.get("updatedAt"),
        )


@dataclass(frozen=True)
class MetalTransaction:
    id: str
    metal_type: str
    weight: float
    purity: int
    price_per_gram: float
    total_value: float
    transaction_type: str
    timestamp: str
    processed_by: Optional[str] = None
    related_sale_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "metalType": self.metal_type,
            "weight": self.weight,
            "purity": self.purity,
            "pricePerGram": self.price_per_gram,
            "totalValue": self.total_value,
            "transactionType": self.transaction_type,
            "relatedSaleId": self.related_sale_id,
            "timestamp": self.timestamp,
            "processedBy": self.processed_by,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MetalTransaction":
        return cls(
            id=str(data["id"]),
            metal_type=str(data["metalType"]),
            weight=float(data["weight"]),
            purity=int(data["purity"]),
            price_per_gram=float(data["pricePerGram"]),
            total_value=float(data["totalValue"]),
            transaction_type=str(data["transactionType"]),
            timestamp=str(data["timestamp"]),
            processed_by=data.get("processedBy"),
            related_sale_id=data.get("relatedSaleId"),
        )


@dataclass(frozen=True)
class MetalSummary:
    total_weight: float
    total_value: float
    avg_price: float

    def to_dict(self) -> dict:
        return {
            "totalWeight": self.total_weight,
            "totalValue": self.total_value,
            "avgPrice": self.avg_price,
        }


@dataclass(frozen=True)
class SalesSummary:
    total_sales: float
    total_transactions: int
    avg_transaction_value: float
    sales_by_date: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "totalSales": self.total_sales,
            "totalTransactions": self.total_transactions,
            "avgTransactionValue": self.avg_transaction_value,
            "salesByDate": dict(self.sales_by_date),
        }


@dataclass(frozen=True)
class User:
    id: str
    email: str
    name: str
    role: str
    active: int = 1

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "name": self.name, "role": self.role, "active": self.active}
