from sqlalchemy.exc import OperationalError

from storefront.models.discount import DiscountUsage
from storefront.models.order import Order
from storefront.services.customer_service import CustomerService


def place(client, items, store_id=1, phone="+77010000000", name="Aida", code=None):
    payload = {"items": items, "customer_name": name, "customer_phone": phone}
    if code is not None:
        payload["discount_code"] = code
    response = client.post(f"/stores/{store_id}/orders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_preview_prices_cart_with_discount(client, make_product, make_discount):
    """Test the checkout preview from the concrete 10% scenario"""
    product = make_product(price=1000)
    make_discount(type="order_amount", value_type="percentage", value=10)

    response = client.post("/stores/1/checkout/preview", json={"items": [{"product_id": product["id"], "quantity": 2}]})
    assert response.status_code == 200
    data = response.json()
    assert data["cart"]["subtotal"] == 2000
    assert data["cart"]["discount_amount"] == 200
    assert data["cart"]["total"] == 1800
    assert data["code_error"] is None


def test_preview_uses_lower_discount_price(client, make_product):
    cheaper = make_product(price=1000, discount_price=800)
    not_cheaper = make_product(price=1000, discount_price=1200)

    response = client.post("/stores/1/checkout/preview", json={"items": [
        {"product_id": cheaper["id"], "quantity": 1},
        {"product_id": not_cheaper["id"], "quantity": 1},
    ]})
    assert response.json()["cart"]["subtotal"] == 1800


def test_preview_merges_repeated_products(client, make_product):
    product = make_product(price=250)
    response = client.post("/stores/1/checkout/preview", json={"items": [
        {"product_id": product["id"], "quantity": 1},
        {"product_id": product["id"], "quantity": 3},
    ]})
    cart = response.json()["cart"]
    assert len(cart["lines"]) == 1
    assert cart["lines"][0]["quantity"] == 4
    assert cart["subtotal"] == 1000


def test_preview_invalid_code_is_not_fatal(client, make_product):
    product = make_product(price=1500)
    response = client.post("/stores/1/checkout/preview", json={
        "items": [{"product_id": product["id"], "quantity": 1}],
        "discount_code": "MISSING",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["code_error"]["error"] == "invalid_code"
    assert data["code_error"]["reason"] == "not_found"
    assert data["cart"]["total"] == 1500


def test_preview_empty_cart(client):
    response = client.post("/stores/1/checkout/preview", json={"items": []})
    assert response.status_code == 200
    assert response.json()["cart"]["total"] == 0


def test_preview_unknown_product(client, make_product):
    make_product(store_id=2, price=100)
    response = client.post("/stores/1/checkout/preview", json={"items": [{"product_id": 1, "quantity": 1}]})
    assert response.status_code == 400
    assert response.json()["error"]["error_code"] == "PRODUCT_NOT_FOUND"


def test_preview_does_not_record_usage(client, db_session, make_product, make_discount):
    product = make_product(price=1000)
    make_discount(type="code", code="ONCE", max_total_uses=1)
    body = {"items": [{"product_id": product["id"], "quantity": 1}], "discount_code": "ONCE"}

    for _ in range(3):
        response = client.post("/stores/1/checkout/preview", json=body)
        assert response.json()["cart"]["discount_amount"] == 100

    assert db_session.query(DiscountUsage).count() == 0


def test_order_numbers_are_sequential_per_store(client, make_product):
    first = make_product(store_id=1)
    second = make_product(store_id=2)

    numbers = [place(client, [{"product_id": first["id"], "quantity": 1}])["order"]["order_number"] for _ in range(3)]
    assert numbers == [1, 2, 3]

    other = place(client, [{"product_id": second["id"], "quantity": 1}], store_id=2)
    assert other["order"]["order_number"] == 1


def test_order_numbers_continue_from_existing_orders(client, db_session, make_product):
    product = make_product()
    db_session.add(Order(
        store_id=1, order_number=41, customer_name="Legacy", customer_phone="+1",
        items=[], subtotal=0, total=0,
    ))
    db_session.commit()

    assert place(client, [{"product_id": product["id"], "quantity": 1}])["order"]["order_number"] == 42
    assert place(client, [{"product_id": product["id"], "quantity": 1}])["order"]["order_number"] == 43


def test_failed_placement_does_not_reuse_numbers(client, make_product):
    product = make_product()
    place(client, [{"product_id": product["id"], "quantity": 1}])

    response = client.post("/stores/1/orders", json={
        "items": [{"product_id": 999, "quantity": 1}], "customer_name": "A", "customer_phone": "+1",
    })
    assert response.status_code == 400

    assert place(client, [{"product_id": product["id"], "quantity": 1}])["order"]["order_number"] == 2


def test_placed_order_initial_state_and_snapshot(client, make_product):
    product = make_product(name="Lamp", price=3000, image_urls=["https://cdn.example/lamp.jpg"])
    data = place(client, [{"product_id": product["id"], "quantity": 2}])
    order = data["order"]

    assert order["status"] == "pending"
    assert order["payment_status"] == "unpaid"
    assert order["fulfillment_status"] == "unfulfilled"
    assert order["subtotal"] == 6000
    assert order["total"] == 6000
    assert order["items"] == [{
        "product_id": product["id"],
        "name": "Lamp",
        "quantity": 2,
        "unit_price": 3000,
        "image_url": "https://cdn.example/lamp.jpg",
    }]

    client.put(f"/stores/1/products/{product['id']}", json={"price": 9999, "name": "Desk lamp"})
    stored = client.get(f"/stores/1/orders/{order['id']}").json()
    assert stored["items"][0]["unit_price"] == 3000
    assert stored["items"][0]["name"] == "Lamp"
    assert stored["total"] == 6000


def test_code_capped_to_subtotal_at_placement(client, make_product, make_discount):
    product = make_product(price=3000)
    make_discount(type="code", code="SALE10", value_type="fixed", value=5000)

    data = place(client, [{"product_id": product["id"], "quantity": 1}], code="sale10")
    assert data["code_error"] is None
    assert data["order"]["discount_amount"] == 3000
    assert data["order"]["total"] == 0
    assert data["order"]["applied_discounts"][0]["code"] == "SALE10"


def test_invalid_code_still_places_order(client, make_product):
    product = make_product(price=700)
    data = place(client, [{"product_id": product["id"], "quantity": 1}], code="NOPE")
    assert data["code_error"]["reason"] == "not_found"
    assert data["order"]["total"] == 700


def test_usage_cap_enforced_across_orders(client, db_session, make_product, make_discount):
    product = make_product(price=1000)
    discount = make_discount(type="automatic", value_type="fixed", value=100, max_total_uses=2)

    totals = [
        place(client, [{"product_id": product["id"], "quantity": 1}], phone=f"+7{i}")["order"]["total"]
        for i in range(4)
    ]
    assert totals == [900, 900, 1000, 1000]
    assert db_session.query(DiscountUsage).filter(DiscountUsage.discount_id == discount["id"]).count() == 2


def test_per_customer_cap_on_code(client, make_product, make_discount):
    product = make_product(price=1000)
    make_discount(type="code", code="FIRSTBUY", max_per_customer=1)
    items = [{"product_id": product["id"], "quantity": 1}]

    assert place(client, items, phone="+1", code="FIRSTBUY")["order"]["total"] == 900
    repeat = place(client, items, phone="+1", code="FIRSTBUY")
    assert repeat["code_error"]["reason"] == "exhausted"
    assert repeat["order"]["total"] == 1000
    assert place(client, items, phone="+2", code="FIRSTBUY")["order"]["total"] == 900


def test_customer_created_then_merged(client, make_product):
    product = make_product(price=500)
    place(client, [{"product_id": product["id"], "quantity": 2}], phone="+7000", name="Aida")
    place(client, [{"product_id": product["id"], "quantity": 1}], phone="+7000", name="Aida B.")
    place(client, [{"product_id": product["id"], "quantity": 1}], phone="+7999", name="Other")

    customers = {c["phone"]: c for c in client.get("/stores/1/customers").json()}
    assert len(customers) == 2
    merged = customers["+7000"]
    assert merged["name"] == "Aida B."
    assert merged["total_orders"] == 2
    assert merged["total_spent"] == 1500
    assert merged["first_order_at"] is not None
    assert merged["last_order_at"] >= merged["first_order_at"]


def test_customer_upsert_failure_does_not_fail_order(client, make_product, monkeypatch):
    product = make_product(price=500)

    def broken(*args, **kwargs):
        raise OperationalError("UPDATE customers", {}, Exception("database is locked"))

    monkeypatch.setattr(CustomerService, "upsert_from_order", staticmethod(broken))

    data = place(client, [{"product_id": product["id"], "quantity": 1}])
    assert data["order"]["order_number"] == 1
    assert client.get("/stores/1/customers").json() == []
    assert len(client.get("/stores/1/orders").json()) == 1


def test_order_status_transitions(client, make_product):
    product = make_product()
    order = place(client, [{"product_id": product["id"], "quantity": 1}])["order"]
    url = f"/stores/1/orders/{order['id']}"

    assert client.patch(url, json={"status": "completed"}).status_code == 409
    assert client.patch(url, json={"status": "confirmed"}).json()["status"] == "confirmed"
    assert client.patch(url, json={"status": "completed"}).json()["status"] == "completed"

    response = client.patch(url, json={"status": "cancelled"})
    assert response.status_code == 409
    assert response.json()["error"]["error_code"] == "ORDER_INVALID_TRANSITION"


def test_cancel_from_pending(client, make_product):
    product = make_product()
    order = place(client, [{"product_id": product["id"], "quantity": 1}])["order"]
    url = f"/stores/1/orders/{order['id']}"
    assert client.patch(url, json={"status": "cancelled"}).json()["status"] == "cancelled"
    assert client.patch(url, json={"status": "pending"}).status_code == 409


def test_payment_status_accepts_any_move(client, make_product):
    product = make_product()
    order = place(client, [{"product_id": product["id"], "quantity": 1}])["order"]
    url = f"/stores/1/orders/{order['id']}"

    for status in ("paid", "refunded", "unpaid", "confirming", "voided", "paid"):
        response = client.patch(url, json={"payment_status": status})
        assert response.status_code == 200
        assert response.json()["payment_status"] == status


def test_fulfillment_transitions_and_note(client, make_product):
    product = make_product()
    order = place(client, [{"product_id": product["id"], "quantity": 1}])["order"]
    url = f"/stores/1/orders/{order['id']}"

    data = client.patch(url, json={"fulfillment_status": "partially_fulfilled", "internal_note": "2 boxes"}).json()
    assert data["fulfillment_status"] == "partially_fulfilled"
    assert data["internal_note"] == "2 boxes"
    assert client.patch(url, json={"fulfillment_status": "unfulfilled"}).status_code == 409
    assert client.patch(url, json={"fulfillment_status": "fulfilled"}).json()["fulfillment_status"] == "fulfilled"


def test_order_of_other_store_not_found(client, make_product):
    product = make_product()
    order = place(client, [{"product_id": product["id"], "quantity": 1}])["order"]
    assert client.get(f"/stores/2/orders/{order['id']}").status_code == 404
    assert client.patch(f"/stores/2/orders/{order['id']}", json={"status": "confirmed"}).status_code == 404


def test_free_delivery_usage_is_recorded_and_capped(client, db_session, make_product, make_discount):
    product = make_product(price=1000)
    discount = make_discount(type="free_delivery", max_total_uses=1)

    first = place(client, [{"product_id": product["id"], "quantity": 1}], phone="+1")["order"]
    assert first["free_delivery"] is True
    assert first["discount_amount"] == 0
    assert db_session.query(DiscountUsage).filter(DiscountUsage.discount_id == discount["id"]).count() == 1

    second = place(client, [{"product_id": product["id"], "quantity": 1}], phone="+2")["order"]
    assert second["free_delivery"] is False
    assert second["applied_discounts"] == []
