import pytest


def new_flower(**overrides):
    payload = {
        "name": "Blue Hydrangea",
        "description": "Cool blue hydrangeas.",
        "price": 27.499,
        "occasion": "General",
        "image": "https://example.com/hydrangea.jpg",
        "stock": 5,
    }
    payload.update(overrides)
    return payload


def test_list_flowers_is_public_and_newest_first(client):
    response = client.get("/flowers")
    assert response.status_code == 200
    ids = [f["id"] for f in response.json()]
    assert ids == ["pastel-peony", "pure-lily", "sunshine-tulip", "rose-red"]


@pytest.mark.parametrize("params, expected", [
    ({"search": "TULIP"}, ["sunshine-tulip"]),
    ({"search": "glass vase"}, ["pure-lily"]),
    ({"occasion": "romance"}, ["rose-red"]),
    ({"max_price": 30}, ["pastel-peony", "sunshine-tulip"]),
    ({"occasion": "all", "max_price": 10}, []),
])
def test_list_flowers_filters(client, params, expected):
    response = client.get("/flowers", params=params)
    assert [f["id"] for f in response.json()] == expected


def test_create_flower(admin_client, store):
    response = admin_client.post("/flowers", json=new_flower())
    assert response.status_code == 201
    body = response.json()
    assert len(body["id"]) == 10
    assert body["price"] == 27.5
    assert body["occasion"] == "general"
    assert body["image_focus_x"] == 50
    assert any(f["id"] == body["id"] for f in store.flowers)


@pytest.mark.parametrize("overrides, message", [
    ({"price": 0}, "price must be greater than 0"),
    ({"price": -3}, "price must be greater than 0"),
    ({"stock": -1}, "stock must be an integer between 0 and 10000"),
    ({"stock": 10001}, "stock must be an integer between 0 and 10000"),
    ({"occasion": "funeral"}, "occasion is invalid"),
    ({"name": " x "}, "name must be at least 2 characters"),
    ({"image": "ftp://example.com/a.jpg"}, "image must be a valid http/https URL"),
    ({"image_focus_y": 120}, "image_focus_y must be between 0 and 100"),
])
def test_create_flower_validation(admin_client, store, overrides, message):
    response = admin_client.post("/flowers", json=new_flower(**overrides))
    assert response.status_code == 400
    assert response.json()["detail"] == message
    assert len(store.flowers) == 4


def test_create_flower_rejects_fractional_stock(admin_client):
    response = admin_client.post("/flowers", json=new_flower(stock=2.5))
    assert response.status_code == 400


def test_create_flower_requires_admin(customer_client):
    response = customer_client.post("/flowers", json=new_flower())
    assert response.status_code == 403
    assert response.json()["detail"] == "insufficient permissions"


def test_patch_flower_merges_fields(admin_client, store):
    response = admin_client.patch("/flowers", params={"id": "rose-red"}, json={"stock": 3, "occasion": "Wedding"})
    assert response.status_code == 200
    body = response.json()
    assert body["stock"] == 3
    assert body["occasion"] == "wedding"
    assert body["name"] == "Crimson Rose Bouquet"
    assert body["price"] == 34.99


def test_patch_flower_validation(admin_client):
    assert admin_client.patch("/flowers", params={"id": "rose-red"}, json={}).json()["detail"] == "at least one flower field is required"
    assert admin_client.patch("/flowers", params={"id": "rose-red"}, json={"price": 0}).status_code == 400
    assert admin_client.patch("/flowers", params={"id": "rose-red"}, json={"name": None}).status_code == 400
    assert admin_client.patch("/flowers", params={"id": "missing"}, json={"stock": 1}).status_code == 404


def test_delete_flower(admin_client, store):
    response = admin_client.delete("/flowers", params={"id": "pure-lily"})
    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert response.json()["removed"]["id"] == "pure-lily"
    assert all(f["id"] != "pure-lily" for f in store.flowers)

    assert admin_client.delete("/flowers", params={"id": "pure-lily"}).status_code == 404
    assert admin_client.delete("/flowers").status_code == 400


def test_delete_flower_requires_session(client):
    assert client.delete("/flowers", params={"id": "pure-lily"}).status_code == 401
