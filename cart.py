"""Client-side cart as a pure transition function over immutable state."""

from dataclasses import dataclass, replace
from typing import Any, List, Optional, Tuple, Union


def product_key(product: Any) -> Optional[str]:
    """Identifier of a product given as a model or a raw catalog document"""
    if isinstance(product, dict):
        value = product.get("id") or product.get("_id")
    else:
        value = getattr(product, "id", None)
    return str(value) if value is not None else None


def _field(product: Any, name: str, default=None):
    if isinstance(product, dict):
        return product.get(name, default)
    return getattr(product, name, default)


@dataclass(frozen=True)
class CartLine:
    product: Any
    quantity: int = 1

    @property
    def product_id(self) -> Optional[str]:
        return product_key(self.product)

    @property
    def name(self) -> Optional[str]:
        return _field(self.product, "name")

    @property
    def price(self) -> float:
        return float(_field(self.product, "price", 0) or 0)

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


@dataclass(frozen=True)
class CartState:
    lines: Tuple[CartLine, ...] = ()

    @property
    def total(self) -> float:
        return sum(line.subtotal for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def product_ids(self) -> List[str]:
        return [line.product_id for line in self.lines if line.product_id]


@dataclass(frozen=True)
class AddItem:
    product: Any


@dataclass(frozen=True)
class RemoveItem:
    product_id: str


@dataclass(frozen=True)
class UpdateQuantity:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


CartAction = Union[AddItem, RemoveItem, UpdateQuantity, ClearCart]

EMPTY_CART = CartState()


def reduce_cart(state: CartState, action: CartAction) -> CartState:
    """Return the state after applying one action; the input is never mutated."""
    if isinstance(action, AddItem):
        key = product_key(action.product)
        if any(line.product_id == key for line in state.lines):
            return CartState(tuple(
                replace(line, quantity=line.quantity + 1) if line.product_id == key else line
                for line in state.lines
            ))
        return CartState(state.lines + (CartLine(product=action.product, quantity=1),))

    if isinstance(action, RemoveItem):
        return CartState(tuple(line for line in state.lines if line.product_id != action.product_id))

    if isinstance(action, UpdateQuantity):
        # a quantity of 0 or less drops the line
        return CartState(tuple(
            replace(line, quantity=action.quantity) if line.product_id == action.product_id else line
            for line in state.lines
            if line.product_id != action.product_id or action.quantity > 0
        ))

    if isinstance(action, ClearCart):
        return EMPTY_CART

    return state


def add_to_cart(state: CartState, product: Any, history=None) -> CartState:
    """Add one unit of a product and remember it as previously ordered"""
    state = reduce_cart(state, AddItem(product))
    key = product_key(product)
    if history is not None and key:
        history.record(key)
    return state
