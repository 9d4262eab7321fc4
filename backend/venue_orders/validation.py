from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError

# Ingredient quantities are fixed-point with three decimals (grams, ml, pieces)
QUANTITY_STEP = Decimal("0.001")
MAX_QUANTITY = Decimal("999999999.999")
MAX_LINE_QUANTITY = 999

ORDER_KIND_DINE_IN = "DINE_IN"
ORDER_KIND_ROOM_SERVICE = "ROOM_SERVICE"
ORDER_KIND_WALK_IN = "WALK_IN"
ORDER_KIND_TAKE_OUT = "TAKE_OUT"

VALID_ORDER_KINDS = {
    ORDER_KIND_DINE_IN,
    ORDER_KIND_ROOM_SERVICE,
    ORDER_KIND_WALK_IN,
    ORDER_KIND_TAKE_OUT,
}


def normalize_quantity(value: Any) -> Decimal:
    """
    Coerce a stock quantity to a Decimal on the 0.001 grid.

    Floats are converted through str() so 0.1 stays 0.1. Booleans are
    rejected even though they are ints.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError("quantity must be a number")
    try:
        qty = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("quantity must be a number")
    if not qty.is_finite():
        raise ValidationError("quantity must be a finite number")
    return qty.quantize(QUANTITY_STEP)


def positive_quantity(value: Any, field_name: str = "quantity") -> Decimal:
    qty = normalize_quantity(value)
    if qty <= 0:
        raise ValidationError(f"{field_name} must be greater than zero")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field_name} is too large")
    return qty


def _reject_unknown_keys(payload: Any, allowed: set[str], where: str) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError(f"{where} must be a JSON object")
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(
            f"Unknown field(s) in {where}: {', '.join(unknown)}",
            details={"unknown_fields": unknown},
        )
    return payload


def _int_field(value: Any, field_name: str, *, required: bool = True, positive: bool = True) -> int | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    # Integers - strict validation to reject floats, bools and "12.5"
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field_name} must be an integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer")
    if positive and value <= 0:
        raise ValidationError(f"{field_name} must be a positive integer")
    return value


def _text_field(value: Any, field_name: str, *, max_length: int, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    text = value.strip()
    if not text:
        if required:
            raise ValidationError(f"{field_name} must not be empty")
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return text


@dataclass(frozen=True)
class OrderItemRequest:
    menu_item_id: int
    quantity: int
    instructions: str | None = None

    FIELDS = frozenset({"menu_item_id", "quantity", "instructions"})

    def __post_init__(self):
        object.__setattr__(self, "menu_item_id", _int_field(self.menu_item_id, "menu_item_id"))
        object.__setattr__(self, "quantity", _int_field(self.quantity, "quantity"))
        if self.quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"quantity must be at most {MAX_LINE_QUANTITY}")

    @classmethod
    def from_payload(cls, payload: Any) -> "OrderItemRequest":
        data = _reject_unknown_keys(payload, cls.FIELDS, "order item")
        return cls(
            menu_item_id=_int_field(data.get("menu_item_id"), "menu_item_id"),
            quantity=_int_field(data.get("quantity"), "quantity"),
            instructions=_text_field(data.get("instructions"), "instructions", max_length=255),
        )


@dataclass(frozen=True)
class CreateOrderRequest:
    """
    Closed order-creation request.

    Deliberately has no price or total fields: pricing is server-side only,
    and a payload that tries to send them is rejected as unknown.
    """
    order_kind: str
    destination: str
    items: tuple[OrderItemRequest, ...]
    customer_id: int | None = None
    instructions: str | None = None

    FIELDS = frozenset({"customer_id", "order_kind", "destination", "instructions", "items"})

    def __post_init__(self):
        if self.order_kind not in VALID_ORDER_KINDS:
            raise ValidationError(
                f"Invalid order_kind '{self.order_kind}'. Must be one of: {', '.join(sorted(VALID_ORDER_KINDS))}"
            )
        if not isinstance(self.destination, str) or not self.destination.strip():
            raise ValidationError("destination must not be empty")
        if not self.items:
            raise ValidationError("Order must have at least one item")
        object.__setattr__(self, "items", tuple(self.items))
        for item in self.items:
            if not isinstance(item, OrderItemRequest):
                raise ValidationError("items must be OrderItemRequest values")
        if self.customer_id is not None:
            _int_field(self.customer_id, "customer_id")

    @classmethod
    def from_payload(cls, payload: Any) -> "CreateOrderRequest":
        data = _reject_unknown_keys(payload, cls.FIELDS, "order")
        raw_items = data.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationError("Order must have at least one item")
        order_kind = data.get("order_kind")
        return cls(
            customer_id=_int_field(data.get("customer_id"), "customer_id", required=False),
            order_kind=order_kind.strip().upper() if isinstance(order_kind, str) else order_kind,
            destination=_text_field(data.get("destination"), "destination", max_length=64, required=True),
            instructions=_text_field(data.get("instructions"), "instructions", max_length=1000),
            items=tuple(OrderItemRequest.from_payload(item) for item in raw_items),
        )


@dataclass(frozen=True)
class StatusChangeRequest:
    status: str
    staff_id: int

    FIELDS = frozenset({"status", "staff_id"})

    @classmethod
    def from_payload(cls, payload: Any) -> "StatusChangeRequest":
        data = _reject_unknown_keys(payload, cls.FIELDS, "status change")
        return cls(
            status=_text_field(data.get("status"), "status", max_length=16, required=True),
            staff_id=_int_field(data.get("staff_id"), "staff_id"),
        )


@dataclass(frozen=True)
class StockMovementRequest:
    action: str
    quantity: Decimal
    staff_id: int
    note: str | None = None

    FIELDS = frozenset({"action", "quantity", "staff_id", "note"})

    @classmethod
    def from_payload(cls, payload: Any) -> "StockMovementRequest":
        data = _reject_unknown_keys(payload, cls.FIELDS, "stock movement")
        action = _text_field(data.get("action"), "action", max_length=16, required=True)
        return cls(
            action=action.upper(),
            quantity=positive_quantity(data.get("quantity")),
            staff_id=_int_field(data.get("staff_id"), "staff_id"),
            note=_text_field(data.get("note"), "note", max_length=255),
        )


@dataclass(frozen=True)
class PaymentRequest:
    order_id: int
    method: str
    amount_cents: int
    staff_id: int | None = None
    reference_number: str | None = None

    FIELDS = frozenset({"order_id", "method", "amount_cents", "staff_id", "reference_number"})

    @classmethod
    def from_payload(cls, payload: Any) -> "PaymentRequest":
        data = _reject_unknown_keys(payload, cls.FIELDS, "payment")
        method = _text_field(data.get("method"), "method", max_length=16, required=True)
        return cls(
            order_id=_int_field(data.get("order_id"), "order_id"),
            method=method.upper(),
            amount_cents=_int_field(data.get("amount_cents"), "amount_cents"),
            staff_id=_int_field(data.get("staff_id"), "staff_id", required=False),
            reference_number=_text_field(data.get("reference_number"), "reference_number", max_length=128),
        )


@dataclass(frozen=True)
class CreateIngredientRequest:
    """New stock-tracked ingredient. Opening stock is booked as RESTOCK."""
    name: str
    unit: str
    opening_stock: Decimal = Decimal("0")
    reorder_threshold: Decimal = Decimal("0")
    staff_id: int | None = None

    FIELDS = frozenset({"name", "unit", "opening_stock", "reorder_threshold", "staff_id"})

    @classmethod
    def from_payload(cls, payload: Any) -> "CreateIngredientRequest":
        data = _reject_unknown_keys(payload, cls.FIELDS, "ingredient")
        opening = normalize_quantity(data.get("opening_stock", 0))
        threshold = normalize_quantity(data.get("reorder_threshold", 0))
        if opening < 0 or threshold < 0:
            raise ValidationError("opening_stock and reorder_threshold cannot be negative")
        return cls(
            name=_text_field(data.get("name"), "name", max_length=128, required=True),
            unit=_text_field(data.get("unit"), "unit", max_length=16, required=True),
            opening_stock=opening,
            reorder_threshold=threshold,
            staff_id=_int_field(data.get("staff_id"), "staff_id", required=False),
        )


@dataclass(frozen=True)
class UpdateIngredientRequest:
    # No stock_level: stock only moves through the ledger
    name: str | None = None
    unit: str | None = None
    reorder_threshold: Decimal | None = None

    FIELDS = frozenset({"name", "unit", "reorder_threshold"})

    @classmethod
    def from_payload(cls, payload: Any) -> "UpdateIngredientRequest":
        data = _reject_unknown_keys(payload, cls.FIELDS, "ingredient update")
        if not data:
            raise ValidationError("Nothing to update")
        threshold = None
        if "reorder_threshold" in data:
            threshold = normalize_quantity(data["reorder_threshold"])
            if threshold < 0:
                raise ValidationError("reorder_threshold cannot be negative")
        return cls(
            name=_text_field(data.get("name"), "name", max_length=128, required="name" in data),
            unit=_text_field(data.get("unit"), "unit", max_length=16, required="unit" in data),
            reorder_threshold=threshold,
        )
