from conftest import stock_of


def order_payload(items, phone="+1 303 555 1212", payment_method=None):
    payload = {
        "customer": {
            "name": "Ana",
            "email": "Ana@Example.com",
            "phone": phone,
            "address": "123 Main Street",
        },
        "items": items,
    }
    if payment_method is not None:
        payload["payment_method"] = payment_method
    return payload


def test_create_order_requires_session(client, store):
    response = client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 1}]))
    assert response.status_code == 401
    assert stock_of(store, "rose-red") == 15


def test_create_order_rejects_invalid_phone_before_touching_stock(customer_client, store):
    response = customer_client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 1}], phone="abc"))
    assert response.status_code == 400
    assert "customer.phone" in response.json()["detail"]
    assert stock_of(store, "rose-red") == 15
    assert store.orders == []


def test_create_order_rejects_phone_with_too_few_digits(customer_client):
    response = customer_client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 1}], phone="(12) 34-5"))
    assert response.status_code == 400


def test_create_order_rejects_stock_conflict(customer_client, store):
    response = customer_client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 16}]))
    assert response.status_code == 409
    assert "insufficient stock" in response.json()["detail"]
    assert stock_of(store, "rose-red") == 15
    assert store.orders == []


def test_conflict_on_later_line_leaves_earlier_lines_untouched(customer_client, store):
    items = [
        {"flower_id": "sunshine-tulip", "quantity": 2},
        {"flower_id": "pure-lily", "quantity": 9},
    ]
    response = customer_client.post("/orders", json=order_payload(items))
    assert response.status_code == 409
    assert stock_of(store, "sunshine-tulip") == 20
    assert stock_of(store, "pure-lily") == 8


def test_create_order_unknown_flower(customer_client, store):
    items = [
        {"flower_id": "rose-red", "quantity": 1},
        {"flower_id": "black-orchid", "quantity": 1},
    ]
    response = customer_client.post("/orders", json=order_payload(items))
    assert response.status_code == 404
    assert response.json()["detail"] == "flower not found: black-orchid"
    assert stock_of(store, "rose-red") == 15


def test_create_order_decrements_stock(customer_client, store):
    response = customer_client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 2}], payment_method="PayPal"))
    assert response.status_code == 201
    body = response.json()
    assert body["payment_method"] == "paypal"
    assert body["payment_status"] == "pending"
    assert body["customer"]["email"] == "ana@example.com"
    assert body["items"] == [{
        "flower_id": "rose-red",
        "name": "Crimson Rose Bouquet",
        "unit_price": 34.99,
        "quantity": 2,
        "line_total": 69.98,
    }]
    assert body["total"] == 69.98
    assert stock_of(store, "rose-red") == 13
    assert len(store.orders) == 1
    assert store.orders[0]["id"] == body["id"]


def test_repeated_flower_ids_are_merged(customer_client, store):
    items = [
        {"flower_id": "pure-lily", "quantity": 5},
        {"flower_id": "sunshine-tulip", "quantity": 1},
        {"flower_id": "pure-lily", "quantity": 3},
    ]
    response = customer_client.post("/orders", json=order_payload(items))
    assert response.status_code == 201
    lines = {item["flower_id"]: item for item in response.json()["items"]}
    assert lines["pure-lily"]["quantity"] == 8
    assert lines["pure-lily"]["line_total"] == 328.0
    assert response.json()["total"] == 352.5
    assert stock_of(store, "pure-lily") == 0


def test_merged_quantity_over_stock_is_a_conflict(customer_client, store):
    items = [
        {"flower_id": "pure-lily", "quantity": 5},
        {"flower_id": "pure-lily", "quantity": 4},
    ]
    response = customer_client.post("/orders", json=order_payload(items))
    assert response.status_code == 409
    assert stock_of(store, "pure-lily") == 8


def test_create_order_rejects_bad_payment_method(customer_client):
    response = customer_client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 1}], payment_method="bitcoin"))
    assert response.status_code == 400
    assert "payment_method" in response.json()["detail"]


def test_create_order_rejects_empty_cart(customer_client):
    response = customer_client.post("/orders", json=order_payload([]))
    assert response.status_code == 400
    assert response.json()["detail"] == "at least one cart item is required"


def test_create_order_rejects_line_quantity_out_of_range(customer_client):
    response = customer_client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 101}]))
    assert response.status_code == 400
    assert response.json()["detail"] == "invalid cart item payload"


def test_line_snapshot_survives_flower_edit(admin_client, store):
    created = admin_client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 1}]))
    assert created.status_code == 201

    patched = admin_client.patch("/flowers", params={"id": "rose-red"}, json={"name": "Renamed Roses", "price": 99})
    assert patched.status_code == 200

    orders = admin_client.get("/orders").json()
    assert orders[0]["items"][0]["name"] == "Crimson Rose Bouquet"
    assert orders[0]["items"][0]["unit_price"] == 34.99


def test_list_orders_is_admin_only(customer_client):
    response = customer_client.get("/orders")
    assert response.status_code == 403


def test_admin_updates_payment_status(admin_client):
    order_id = admin_client.post("/orders", json=order_payload([{"flower_id": "rose-red", "quantity": 1}])).json()["id"]

    response = admin_client.patch("/orders", params={"id": order_id}, json={"payment_status": "PAID"})
    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"

    listed = admin_client.get("/orders").json()
    assert listed[0]["payment_status"] == "paid"


def test_update_payment_status_validation(admin_client):
    assert admin_client.patch("/orders", params={"id": "nope"}, json={"payment_status": "paid"}).status_code == 404
    assert admin_client.patch("/orders", params={"id": "nope"}, json={"payment_status": "refunded"}).status_code == 400
    response = admin_client.patch("/orders", json={"payment_status": "paid"})
    assert response.status_code == 400
    assert response.json()["detail"] == "id query param is required"


def test_invalid_customer_email_names_the_field(customer_client, store):
    payload = order_payload([{"flower_id": "rose-red", "quantity": 1}])
    payload["customer"]["email"] = "not-an-email"
    response = customer_client.post("/orders", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"].startswith("customer.email: ")
    assert stock_of(store, "rose-red") == 15
