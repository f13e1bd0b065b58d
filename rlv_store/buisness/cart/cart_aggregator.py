"""
Cart aggregator

Per-user, per-store working set of selected goods. Pure in-memory logic:
the presentation layer keeps the serialized form in the Flask session and
the order ledger snapshots it on submit.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict

from rlv_store.buisness.core.errors import ItemNotInCart, ValidationError

MAX_PER_ITEM = 3


@dataclass
class CartLine:
    item_id: str
    name: str
    unit_price: float
    quantity: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        return cls(
            item_id=str(data['item_id']),
            name=str(data.get('name') or data['item_id']),
            unit_price=float(data['unit_price']),
            quantity=int(data['quantity']),
        )


@dataclass
class AddResult:
    """Outcome of CartAggregator.add; adjusted is True when the cap clamped the quantity."""
    line: CartLine
    requested: int
    adjusted: bool


class CartAggregator:
    """
    Cart for every store a single user is shopping in.

    Lines keep insertion order per store. Every line quantity stays in
    [1, max_per_item].
    """

    def __init__(self, max_per_item: int = MAX_PER_ITEM):
        if max_per_item < 1:
            raise ValueError("max_per_item must be at least 1")
        self.max_per_item = max_per_item
        self._carts: dict[str, list[CartLine]] = {}

    def add(self, store_id: str, line: CartLine) -> AddResult:
        """
        Add a line, merging with an existing line for the same item.

        Quantities are summed and clamped to max_per_item. Exceeding the cap
        is reported through AddResult.adjusted, never rejected.
        """
        if line.quantity < 1:
            raise ValidationError(f"Quantity must be at least 1, got {line.quantity}")
        if line.unit_price < 0:
            raise ValidationError(f"Unit price cannot be negative, got {line.unit_price}")

        lines = self._carts.setdefault(store_id, [])
        existing = self._find(lines, line.item_id)
        requested = line.quantity + (existing.quantity if existing else 0)
        quantity = min(requested, self.max_per_item)

        if existing:
            existing.quantity = quantity
            target = existing
        else:
            target = CartLine(line.item_id, line.name, line.unit_price, quantity)
            lines.append(target)

        return AddResult(line=target, requested=requested, adjusted=requested > quantity)

    def remove(self, store_id: str, item_id: str) -> CartLine:
        lines = self._carts.get(store_id, [])
        existing = self._find(lines, item_id)
        if existing is None:
            raise ItemNotInCart(store_id, item_id)
        lines.remove(existing)
        if not lines:
            self._carts.pop(store_id, None)
        return existing

    def increase(self, store_id: str, item_id: str) -> CartLine:
        existing = self._require(store_id, item_id)
        existing.quantity = min(existing.quantity + 1, self.max_per_item)
        return existing

    def decrease(self, store_id: str, item_id: str) -> CartLine:
        """Decrement, flooring at 1. Dropping the line is a separate remove()."""
        existing = self._require(store_id, item_id)
        existing.quantity = max(existing.quantity - 1, 1)
        return existing

    def clear(self, store_id: str) -> None:
        self._carts.pop(store_id, None)

    def lines(self, store_id: str) -> list[CartLine]:
        return [CartLine(entry.item_id, entry.name, entry.unit_price, entry.quantity) for entry in self._carts.get(store_id, [])]

    def quantity_of(self, store_id: str, item_id: str) -> int:
        existing = self._find(self._carts.get(store_id, []), item_id)
        return existing.quantity if existing else 0

    def total(self, store_id: str) -> float:
        """Sum of unit_price * min(quantity, max_per_item), rounded to cents."""
        return round(
            sum(entry.unit_price * min(entry.quantity, self.max_per_item) for entry in self._carts.get(store_id, [])),
            2,
        )

    def is_empty(self, store_id: str) -> bool:
        return not self._carts.get(store_id)

    def to_dict(self) -> dict:
        return {store_id: [entry.to_dict() for entry in lines] for store_id, lines in self._carts.items() if lines}

    @classmethod
    def from_dict(cls, data: dict | None, max_per_item: int = MAX_PER_ITEM) -> "CartAggregator":
        """Rebuild from session data, re-clamping anything stored out of range."""
        cart = cls(max_per_item=max_per_item)
        for store_id, raw_lines in (data or {}).items():
            for raw in raw_lines:
                line = CartLine.from_dict(raw)
                if line.quantity < 1:
                    continue
                cart.add(store_id, line)
        return cart

    def _require(self, store_id: str, item_id: str) -> CartLine:
        existing = self._find(self._carts.get(store_id, []), item_id)
        if existing is None:
            raise ItemNotInCart(store_id, item_id)
        return existing

    @staticmethod
    def _find(lines: list[CartLine], item_id: str) -> CartLine | None:
        for entry in lines:
            if entry.item_id == item_id:
                return entry
        return None
