from cart import (
    EMPTY_CART,
    AddItem,
    CartState,
    ClearCart,
    RemoveItem,
    UpdateQuantity,
    add_to_cart,
    reduce_cart,
)
from order_history import OrderHistoryCache
from schemas import Product

SHAWARMA = {"_id": "p1", "name": "Chicken Shawarma", "price": 65}
CREPE = {"id": "p2", "name": "Nutella Crepe", "price": 55}


def test_add_new_and_existing_items():
    state = reduce_cart(EMPTY_CART, AddItem(SHAWARMA))
    state = reduce_cart(state, AddItem(CREPE))
    state = reduce_cart(state, AddItem(SHAWARMA))

    assert [(line.product_id, line.quantity) for line in state.lines] == [("p1", 2), ("p2", 1)]
    assert state.total == 65 * 2 + 55


def test_reducer_does_not_mutate_input():
    before = reduce_cart(EMPTY_CART, AddItem(SHAWARMA))
    after = reduce_cart(before, AddItem(SHAWARMA))

    assert before.lines[0].quantity == 1
    assert after.lines[0].quantity == 2


def test_update_quantity_and_drop_at_zero():
    state = CartState()
    for product in (SHAWARMA, CREPE):
        state = reduce_cart(state, AddItem(product))

    state = reduce_cart(state, UpdateQuantity("p2", 4))
    assert state.lines[1].quantity == 4

    state = reduce_cart(state, UpdateQuantity("p1", 0))
    assert state.product_ids() == ["p2"]
    assert state.total == 220


def test_remove_and_clear():
    state = reduce_cart(reduce_cart(EMPTY_CART, AddItem(SHAWARMA)), AddItem(CREPE))

    state = reduce_cart(state, RemoveItem("p1"))
    assert state.product_ids() == ["p2"]

    state = reduce_cart(state, ClearCart())
    assert state.is_empty and state.total == 0


def test_accepts_product_models():
    product = Product(id="abc", name="Mix Box", price=120, category="Boxes")

    state = reduce_cart(EMPTY_CART, AddItem(product))

    assert state.lines[0].product_id == "abc"
    assert state.lines[0].name == "Mix Box"
    assert state.total == 120


def test_add_to_cart_records_product_as_previously_ordered(tmp_path):
    history = OrderHistoryCache(tmp_path / "previous.json")

    state = add_to_cart(EMPTY_CART, {"id": "p1", "name": "Shawarma", "price": 65}, history)
    state = add_to_cart(state, {"_id": "p2", "name": "Crepe", "price": 55}, history)
    state = add_to_cart(state, {"id": "p1", "name": "Shawarma", "price": 65}, history)

    assert [(line.product_id, line.quantity) for line in state.lines] == [("p1", 2), ("p2", 1)]
    assert history.ids == ["p1", "p2"]
    assert OrderHistoryCache(tmp_path / "previous.json").ids == ["p1", "p2"]


def test_add_to_cart_without_history_only_updates_cart():
    state = add_to_cart(EMPTY_CART, {"id": "p1", "price": 10})

    assert state.product_ids() == ["p1"]
