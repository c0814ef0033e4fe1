"""
Order draft assembly and submission

A draft is built from the cart (or a single "buy now" product), the
customer's details and the resolved delivery location. Submission normalizes
the line items to {productId, name, quantity, price} and persists the order
in one transaction through OrderStore.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as SchemaError

from cart import EMPTY_CART, CartLine, CartState, product_key
from config import Config
from database import OrderStore, PersistenceFailure
from geolocation import DeliveryLocation, LocationAcquirer
from order_history import OrderHistoryCache
from schemas import Location, Order, OrderItem, OrderStatus

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Draft or order payload is incomplete; nothing was submitted"""
    pass


class MissingProductIdentifier(ValidationError):
    pass


@dataclass(frozen=True)
class CustomerDetails:
    name: str
    phone: str
    address: str = ""  # manual address text, used when the location has none


def normalize_phone(raw: str, country_code: str = Config.COUNTRY_CALLING_CODE) -> str:
    """Digits only, prefixed with +<country code>; already-prefixed numbers are not prefixed twice"""
    text = raw.strip()
    digits = re.sub(r"\D", "", text)
    if text.startswith("+") and digits.startswith(country_code):
        digits = digits[len(country_code):]
    elif digits.startswith("00" + country_code):
        digits = digits[len(country_code) + 2:]
    return f"+{country_code}{digits}"


def compute_subtotal(lines: Iterable[Any]) -> float:
    return sum(float(line.price) * line.quantity for line in lines)


def compute_total(lines: Iterable[Any], delivery_fee: float = Config.DELIVERY_FEE) -> float:
    return round(compute_subtotal(lines) + delivery_fee, 2)


@dataclass(frozen=True)
class OrderDraft:
    customer_name: str
    customer_phone: str
    customer_address: str
    location: DeliveryLocation
    lines: Tuple[CartLine, ...]
    subtotal: float
    delivery_fee: float
    total: float
    direct: bool = False
    payment_method: str = Config.PAYMENT_METHOD
    status: str = OrderStatus.PENDING.value

    def items(self) -> List[Dict[str, Any]]:
        return [{"product": line.product, "quantity": line.quantity} for line in self.lines]


def build_draft(
    customer: CustomerDetails,
    location: Optional[DeliveryLocation],
    cart: Optional[CartState] = None,
    direct_product: Optional[Dict[str, Any]] = None,
    direct: bool = False,
) -> OrderDraft:
    """
    Assemble the pre-submission order.

    Args:
        customer: Name, phone and optional manual address
        location: Resolved delivery location (required)
        cart: Cart contents, used unless `direct` is set
        direct_product: "Buy now" payload {id, name, price, image, quantity?}
        direct: Order the single direct_product instead of the cart

    Returns:
        OrderDraft with subtotal, delivery fee and total computed

    Raises:
        ValidationError: on a missing name, phone, location, cart contents
            or direct product
    """
    name = (customer.name or "").strip()
    phone = (customer.phone or "").strip()
    if not name or not phone:
        raise ValidationError("Customer name and phone are required")
    if location is None or not (location.address or "").strip():
        raise ValidationError("A delivery location is required")

    if direct:
        if not direct_product:
            raise ValidationError("No product selected for direct order")
        product = {k: direct_product.get(k) for k in ("id", "name", "price", "image")}
        if product["id"] is None and direct_product.get("_id") is not None:
            product["id"] = direct_product["_id"]
        lines: Tuple[CartLine, ...] = (
            CartLine(product=product, quantity=int(direct_product.get("quantity") or 1)),
        )
    else:
        if cart is None or cart.is_empty:
            raise ValidationError("Cart is empty")
        lines = cart.lines

    subtotal = compute_subtotal(lines)
    return OrderDraft(
        customer_name=name,
        customer_phone=normalize_phone(phone),
        customer_address=location.address or customer.address.strip(),
        location=location,
        lines=lines,
        subtotal=subtotal,
        delivery_fee=Config.DELIVERY_FEE,
        total=compute_total(lines),
        direct=direct,
    )


def _get(obj: Any, name: str):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def resolve_product_id(item: Any) -> Optional[str]:
    """productId if given, else the product's id / _id"""
    explicit = _get(item, "productId") or _get(item, "product_id")
    if explicit:
        return str(explicit)
    product = _get(item, "product")
    if product is not None:
        return product_key(product)
    return None


def normalize_line_items(items: Iterable[Any]) -> List[OrderItem]:
    """
    Convert line items of any client shape to OrderItem.

    Raises:
        MissingProductIdentifier: if any item has no resolvable product id
        ValidationError: if an item has no usable quantity or price
    """
    normalized = []
    for index, item in enumerate(items):
        product_id = resolve_product_id(item)
        if not product_id:
            raise MissingProductIdentifier(f"A product ID is missing from item {index} of the order")
        product = _get(item, "product") or {}
        price = _get(item, "price")
        quantity = _get(item, "quantity")
        try:
            normalized.append(OrderItem(
                product_id=product_id,
                name=_get(item, "name") or _get(product, "name"),
                quantity=quantity if quantity is not None else 1,
                price=price if price is not None else _get(product, "price"),
            ))
        except SchemaError as e:
            raise ValidationError(f"Invalid item {index}: {e.errors()[0]['msg']}") from e
    if not normalized:
        raise ValidationError("Order has no items")
    return normalized


def build_order_document(
    customer_name: str,
    customer_phone: str,
    customer_address: str,
    items: Iterable[Any],
    location: Optional[Location] = None,
) -> Dict[str, Any]:
    """Order document ready to insert; total is recomputed from the normalized items"""
    order_items = normalize_line_items(items)
    order = Order(
        customer_name=customer_name.strip(),
        customer_phone=normalize_phone(customer_phone),
        customer_address=customer_address.strip(),
        location=location,
        items=order_items,
        total=compute_total(order_items),
    )
    return order.model_dump(by_alias=True, exclude_none=True)


def order_code(order_id: Any) -> str:
    """Human-friendly order code: last 6 characters of the id, uppercased"""
    return str(order_id)[-6:].upper()


@dataclass
class SubmissionResult:
    success: bool
    order_id: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def code(self) -> Optional[str]:
        return order_code(self.order_id) if self.order_id else None


def persist_order(order_doc: Dict[str, Any], store: OrderStore) -> SubmissionResult:
    try:
        stored = store.insert_order(order_doc)
    except PersistenceFailure as e:
        logger.error(f"Error creating order: {e}")
        return SubmissionResult(success=False, error=str(e))
    return SubmissionResult(success=True, order_id=str(stored["_id"]), raw=stored)


def submit_order(draft: OrderDraft, store: OrderStore) -> SubmissionResult:
    """
    Validate, normalize and persist a draft.

    Raises:
        ValidationError: before any write, when the draft's items cannot be
            normalized (e.g. MissingProductIdentifier)
    """
    location = Location(**draft.location.as_dict())
    order_doc = build_order_document(
        customer_name=draft.customer_name,
        customer_phone=draft.customer_phone,
        customer_address=draft.customer_address,
        items=draft.items(),
        location=location,
    )
    return persist_order(order_doc, store)


@dataclass
class OrdersState:
    """Orders known to the client session, newest first"""
    orders: List[Dict[str, Any]] = field(default_factory=list)

    def load(self, store: OrderStore) -> None:
        self.orders = store.list_orders()

    def add(self, order: Dict[str, Any]) -> None:
        self.orders.insert(0, order)

    def update_status(self, order_id: str, status: str) -> bool:
        for order in self.orders:
            if str(order.get("_id")) == order_id:
                order["status"] = status
                return True
        return False


def complete_checkout(
    draft: OrderDraft,
    store: OrderStore,
    orders: OrdersState,
    cart: CartState,
    history: Optional[OrderHistoryCache] = None,
    acquirer: Optional[LocationAcquirer] = None,
) -> Tuple[SubmissionResult, CartState]:
    """
    Submit a draft and apply the client-side effects of a successful order.

    Returns the submission result and the cart to keep: emptied after a cart
    order, untouched after a direct order or a failure.
    """
    result = submit_order(draft, store)
    if not result.success:
        return result, cart

    if acquirer is not None:
        acquirer.close()
    orders.add(result.raw)
    if history is not None:
        history.record_many(line.product_id for line in draft.lines)
    logger.info(f"Order {result.code} placed for {draft.customer_name}, total {draft.total}")
    return result, (cart if draft.direct else EMPTY_CART)
