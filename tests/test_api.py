VALID_ORDER = {
    "customerName": "Mona Adel",
    "customerPhone": "01012345678",
    "customerAddress": "10 Tahrir St, Cairo",
    "location": {"lat": 30.0444, "lng": 31.2357, "address": "10 Tahrir St, Cairo"},
    "items": [
        {"product": {"id": "p1", "name": "Chicken Shawarma", "price": 65}, "quantity": 2},
        {"productId": "p2", "name": "Nutella Crepe", "quantity": 1, "price": 55},
    ],
    "total": 1,
}


def test_root(api):
    assert api.get("/").json() == {"message": "Food Ordering API is running"}


def test_post_order_missing_phone_is_rejected(api, store):
    body = {k: v for k, v in VALID_ORDER.items() if k != "customerPhone"}

    response = api.post("/orders", json=body)

    assert response.status_code == 400
    assert "customerPhone" in response.json()["detail"]
    assert store.list_orders() == []


def test_post_order_blank_name_is_rejected(api, store):
    response = api.post("/orders", json=dict(VALID_ORDER, customerName="   "))

    assert response.status_code == 400
    assert store.list_orders() == []


def test_post_order_item_without_product_id_is_rejected(api, store):
    body = dict(VALID_ORDER, items=[{"name": "Mystery", "quantity": 1, "price": 10}])

    response = api.post("/orders", json=body)

    assert response.status_code == 400
    assert "product ID" in response.json()["detail"]
    assert store.list_orders() == []


def test_post_valid_order_then_list(api):
    first = api.post("/orders", json=dict(VALID_ORDER, customerName="Earlier"))
    assert first.status_code == 201

    response = api.post("/orders", json=VALID_ORDER)

    assert response.status_code == 201
    order = response.json()
    assert order["total"] == 65 * 2 + 55 + 35
    assert order["customerPhone"] == "+2001012345678"
    assert order["status"] == "pending"
    assert order["paymentMethod"] == "cash"
    assert order["code"] == order["id"][-6:].upper()
    assert order["items"][0] == {"productId": "p1", "name": "Chicken Shawarma", "quantity": 2, "price": 65}

    listing = api.get("/orders").json()
    assert [o["id"] for o in listing] == [order["id"], first.json()["id"]]


def test_post_order_persistence_failure_returns_500(api, store):
    store.db["orders"].fail_inserts = True

    response = api.post("/orders", json=VALID_ORDER)

    assert response.status_code == 500
    assert "insert rejected" in response.json()["detail"]
    assert store.list_orders() == []


def test_get_and_update_order(api):
    order_id = api.post("/orders", json=VALID_ORDER).json()["id"]

    assert api.get(f"/orders/{order_id}").json()["customerName"] == "Mona Adel"

    response = api.put(f"/orders/{order_id}", json={"status": "delivered"})
    assert response.status_code == 200
    assert response.json()["status"] == "delivered"
    assert api.get(f"/orders/{order_id}").json()["status"] == "delivered"


def test_update_unknown_or_invalid_order(api):
    assert api.put("/orders/65f1c2d3e4f5a6b7c8d9e0af", json={"status": "delivered"}).status_code == 404
    assert api.put("/orders/not-an-id", json={"status": "delivered"}).status_code == 400
    assert api.get("/orders/not-an-id").status_code == 400
    assert api.put("/orders/65f1c2d3e4f5a6b7c8d9e0af", json={"status": "lost"}).status_code == 422


def test_orders_summary_sums_item_prices(api, store):
    api.post("/orders", json=VALID_ORDER)
    store.db["orders"].insert_one({"customerName": "Legacy", "customerAddress": "Giza"})
    store.db["orders"].insert_one({"customerName": "Empty", "customerAddress": "Giza", "items": []})

    summary = {o["customerName"]: o for o in api.get("/orders/summary").json()}

    assert summary["Mona Adel"]["total"] == 65 + 55
    assert summary["Legacy"]["total"] == 0
    assert summary["Empty"]["total"] == 0


def test_seed_is_idempotent_and_products_are_prioritized(api):
    assert api.post("/seed").json()["inserted"] > 0
    assert api.post("/seed").json()["inserted"] == 0

    products = api.get("/products").json()
    assert all(p["available"] for p in products)
    last = products[-1]["id"]

    prioritized = api.get("/products", params={"previous": f"{last},unknown"}).json()
    assert prioritized[0]["id"] == last
    assert [p["id"] for p in prioritized[1:]] == [p["id"] for p in products[:-1]]


def test_products_by_category(api):
    api.post("/seed")

    crepes = api.get("/products", params={"category": "Crepes"}).json()

    assert crepes and all(p["category"] == "Crepes" for p in crepes)
    assert api.get("/products", params={"category": "Pizza"}).status_code == 422


def test_reverse_geocode(api):
    response = api.get("/geocode/reverse", params={"lat": 30.0444, "lng": 31.2357})

    assert response.json() == {"lat": 30.0444, "lng": 31.2357, "address": "10 Tahrir St, Cairo, Egypt"}
    assert api.get("/geocode/reverse", params={"lat": 91, "lng": 0}).status_code == 422


def test_database_diagnostics(api):
    body = api.get("/test").json()

    assert body["backend"] == "✅ Running"
