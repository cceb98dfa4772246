import pytest
from pymongo.errors import PyMongoError

from conftest import add_product
from shop_backend import catalog


def test_first_product_gets_id_one(client):
    product = add_product(client)

    assert product["id"] == 1
    assert product["available"] is True
    assert product["new_price"] == 50.0
    assert product["date"].endswith("Z")


def test_ids_follow_the_current_maximum(client, db):
    for _ in range(3):
        add_product(client)
    client.delete("/removeproduct", json={"id": 2})

    assert add_product(client)["id"] == 4

    client.delete("/removeproduct", json={"id": 4})
    assert add_product(client)["id"] == 4
    assert sorted(doc["id"] for doc in db.products.find()) == [1, 3, 4]


def test_id_collision_retries_with_fresh_maximum(client, db, monkeypatch):
    add_product(client)
    stale_reads = iter([1])
    original = catalog.next_product_id

    def racing_next_product_id(store):
        return next(stale_reads, None) or original(store)

    monkeypatch.setattr(catalog, "next_product_id", racing_next_product_id)

    assert add_product(client)["id"] == 2
    assert db.products.count_documents({"id": 1}) == 1


def test_add_product_validates_fields(client, db):
    response = client.post("/addproduct", json={"name": "Shirt", "new_price": "cheap"})

    assert response.status_code == 400
    paths = {error["path"] for error in response.get_json()["errors"]}
    assert paths == {"image", "category", "new_price", "old_price"}
    assert db.products.count_documents({}) == 0


def test_store_failure_is_reported_as_server_error(client, monkeypatch):
    def broken(store):
        raise PyMongoError("connection reset")

    monkeypatch.setattr(catalog, "next_product_id", broken)

    response = client.post(
        "/addproduct",
        json={"name": "a", "image": "b", "category": "c", "new_price": 1, "old_price": 2},
    )

    assert response.status_code == 500
    assert response.get_json() == {
        "success": False,
        "error": "Error adding product",
        "detail": "connection reset",
    }


def test_store_failure_detail_can_be_hidden(app, client, monkeypatch):
    app.config["EXPOSE_STORE_ERRORS"] = False

    def broken(store):
        raise PyMongoError("connection reset")

    monkeypatch.setattr(catalog, "next_product_id", broken)

    response = client.post(
        "/addproduct",
        json={"name": "a", "image": "b", "category": "c", "new_price": 1, "old_price": 2},
    )

    assert response.status_code == 500
    assert "detail" not in response.get_json()


def test_remove_product(client, db):
    add_product(client, name="Jacket")

    response = client.delete("/removeproduct", json={"id": 1})

    assert response.status_code == 200
    assert response.get_json() == {
        "success": True,
        "message": "Product removed",
        "name": "Jacket",
    }
    assert db.products.count_documents({}) == 0


def test_remove_unknown_product_leaves_catalog_unchanged(client, db):
    add_product(client)

    response = client.delete("/removeproduct", json={"id": 99})

    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "Product not found"}
    assert db.products.count_documents({}) == 1


def test_remove_product_requires_integer_id(client):
    response = client.delete("/removeproduct", json={"id": "one"})

    assert response.status_code == 400


def test_curated_views_are_storage_order_slices(client):
    for index in range(12):
        add_product(client, name=f"p{index}", category="women" if index % 2 else "men")

    all_ids = [p["id"] for p in client.get("/allproducts").get_json()]
    assert all_ids == list(range(1, 13))

    new_ids = [p["id"] for p in client.get("/newcollection").get_json()]
    assert new_ids == list(range(5, 13))

    popular = client.get("/popularinwomen").get_json()
    assert [p["id"] for p in popular] == [2, 4, 6, 8]
    assert {p["category"] for p in popular} == {"women"}

    related = client.get("/reletedproducts").get_json()
    assert [p["id"] for p in related] == [1, 2, 3, 4]
    assert client.get("/relatedproducts").get_json() == related


def test_new_collection_skips_first_product(client):
    add_product(client)
    assert client.get("/newcollection").get_json() == []

    add_product(client)
    assert [p["id"] for p in client.get("/newcollection").get_json()] == [2]


@pytest.mark.parametrize("price", ["nan", "inf", "-inf", "1e400"])
def test_non_finite_prices_are_rejected(client, db, price):
    response = client.post(
        "/addproduct",
        json={"name": "a", "image": "b", "category": "c", "new_price": price, "old_price": price},
    )

    assert response.status_code == 400
    paths = {error["path"] for error in response.get_json()["errors"]}
    assert paths == {"new_price", "old_price"}
    assert db.products.count_documents({}) == 0
    assert client.get("/allproducts").get_json() == []
