from datetime import datetime, timedelta, timezone
from decimal import Decimal
from conftest import sign_payload, stripe_event

CART = [{"product_id": "p1", "quantity": 2}]

def place(client, headers, method="CASH", **extra):
    body = {"items": CART, "fulfillment_type": "PICKUP", "payment_method": method, **extra}
    return client.post("/orders/", json=body, headers=headers)

def test_health_endpoints(client):
    assert client.get("/health").json()["status"] == "pass"
    assert client.get("/health/live").json() == {"status": "alive"}
    ready = client.get("/health/ready")
    assert ready.status_code in (200, 503)
    assert "database:connectivity" in ready.json()["checks"]
    assert "uptime_seconds" in client.get("/metrics").json()

def test_menu(client, products):
    categories = client.get("/menu/categories").json()
    assert [c["name"] for c in categories] == ["Truffles"]

    body = client.get("/menu/products", params={"limit": 1}).json()
    assert body["pagination"] == {"page": 1, "limit": 1, "total_count": 2, "total_pages": 2}
    assert client.get("/menu/products/p1").json()["price"] == "5.000"
    assert client.get("/menu/products/nope").status_code == 404

def test_place_cash_order(client, products, customer_headers):
    resp = place(client, customer_headers)
    assert resp.status_code == 201
    order = resp.json()["order"]
    assert Decimal(order["total_amount"]) == Decimal("10.00")
    assert order["status"] == "PENDING"
    assert order["payment"]["status"] == "SUCCESS"
    assert resp.json()["client_secret"] is None
    assert resp.headers["X-Request-ID"]

def test_place_order_requires_token(client, products):
    resp = place(client, {})
    assert resp.status_code == 401
    assert resp.json()["error"] == "unauthenticated"
    assert place(client, {"Authorization": "Bearer not-a-jwt"}).status_code == 401

def test_place_order_rejects_unknown_fields(client, products, customer_headers):
    resp = place(client, customer_headers, unit_price="0.001")
    assert resp.status_code == 422

def test_unavailable_product(client, products, customer_headers):
    body = {"items": [{"product_id": "p3", "quantity": 1}], "fulfillment_type": "DELIVERY", "payment_method": "CASH"}
    resp = client.post("/orders/", json=body, headers=customer_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "product_unavailable"
    assert client.get("/orders/my", headers=customer_headers).json()["pagination"]["total_count"] == 0

def test_card_order_paid_by_webhook(client, products, customer_headers):
    resp = place(client, customer_headers, method="CARD",
                 scheduled_time=(datetime.now(timezone.utc) + timedelta(hours=3)).isoformat())
    assert resp.status_code == 201
    secret = resp.json()["client_secret"]
    order = resp.json()["order"]
    assert secret == "pi_test_1_secret_abc"
    assert order["payment"]["status"] == "PENDING"

    payload = stripe_event("payment_intent.succeeded", "pi_test_1")
    for _ in range(2):
        ack = client.post("/payments/webhook", content=payload, headers={"Stripe-Signature": sign_payload(payload)})
        assert ack.status_code == 200
        assert ack.json() == {"received": True}

    paid = client.get(f"/orders/{order['id']}", headers=customer_headers).json()
    assert paid["payment"]["status"] == "SUCCESS"
    assert paid["status"] == "PENDING"

def test_webhook_with_bad_signature(client, products, customer_headers):
    order = place(client, customer_headers, method="CARD").json()["order"]
    payload = stripe_event("payment_intent.succeeded", "pi_test_1")

    resp = client.post("/payments/webhook", content=payload, headers={"Stripe-Signature": sign_payload(payload, secret="whsec_x")})
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_signature"
    assert client.post("/payments/webhook", content=payload).status_code == 400

    still = client.get(f"/orders/{order['id']}", headers=customer_headers).json()
    assert still["payment"]["status"] == "PENDING"

def test_webhook_for_unknown_payment_is_acknowledged(client):
    payload = stripe_event("payment_intent.succeeded", "pi_elsewhere")
    resp = client.post("/payments/webhook", content=payload, headers={"Stripe-Signature": sign_payload(payload)})
    assert resp.status_code == 200

def test_payment_intent_retry(client, products, customer_headers, gateway):
    gateway.unavailable = True
    resp = place(client, customer_headers, method="CARD")
    assert resp.status_code == 503
    assert resp.json()["error"] == "gateway_unavailable"

    order_id = client.get("/orders/my", headers=customer_headers).json()["orders"][0]["id"]
    gateway.unavailable = False
    retry = client.post("/payments/intent", json={"order_id": order_id}, headers=customer_headers)
    assert retry.status_code == 200
    assert retry.json()["client_secret"] == "pi_test_1_secret_abc"
    assert Decimal(retry.json()["amount"]) == Decimal("10")

def test_other_customers_cannot_read_an_order(client, products, customer_headers, settings):
    from storefront.auth_local import create_access_token
    order = place(client, customer_headers).json()["order"]
    intruder = {"Authorization": f"Bearer {create_access_token('user-2', settings)}"}
    assert client.get(f"/orders/{order['id']}", headers=intruder).status_code == 403
    assert client.get("/orders/missing", headers=customer_headers).status_code == 404

def test_admin_status_flow(client, products, customer_headers, admin_headers):
    order = place(client, customer_headers).json()["order"]
    url = f"/admin/orders/{order['id']}/status"

    assert client.post(url, json={"status": "PREPARING"}, headers=customer_headers).status_code == 403
    for status in ("PREPARING", "READY", "COMPLETED"):
        resp = client.post(url, json={"status": status}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == status

    resp = client.post(url, json={"status": "CANCELLED"}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"] == "invalid_transition"
    assert client.post(url, json={"status": "SHIPPED"}, headers=admin_headers).status_code == 422
    assert client.post("/admin/orders/missing/status", json={"status": "READY"}, headers=admin_headers).status_code == 404

def test_order_listings(client, products, customer_headers, admin_headers):
    first = place(client, customer_headers).json()["order"]
    place(client, customer_headers)
    client.post(f"/admin/orders/{first['id']}/status", json={"status": "PREPARING"}, headers=admin_headers)

    mine = client.get("/orders/my", params={"limit": 1}, headers=customer_headers).json()
    assert mine["pagination"]["total_count"] == 2
    assert mine["pagination"]["total_pages"] == 2
    assert len(mine["orders"]) == 1

    assert client.get("/admin/orders/", headers=customer_headers).status_code == 403
    preparing = client.get("/admin/orders/", params={"status": "PREPARING"}, headers=admin_headers).json()
    assert [o["id"] for o in preparing["orders"]] == [first["id"]]
    everything = client.get("/admin/orders/", params={"status": "ALL", "sort_by": "status"}, headers=admin_headers).json()
    assert [o["status"] for o in everything["orders"]] == ["PENDING", "PREPARING"]

def test_oversized_quantity_is_a_client_error(client, products, customer_headers):
    body = {"items": [{"product_id": "p1", "quantity": 2 ** 63}], "fulfillment_type": "PICKUP", "payment_method": "CASH"}
    resp = client.post("/orders/", json=body, headers=customer_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_quantity"
    assert client.get("/orders/my", headers=customer_headers).json()["pagination"]["total_count"] == 0

def test_webhook_body_that_is_not_utf8_is_rejected(client):
    payload = stripe_event("payment_intent.succeeded", "pi_test_1").encode() + b"\xff\xfe"
    resp = client.post("/payments/webhook", content=payload, headers={"Stripe-Signature": "t=1,v1=deadbeef"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_signature"
