"""Integration tests for the order endpoints via TestClient."""

from datetime import timedelta

import pytest
from marketplace.api.auth import issue_token


@pytest.fixture()
def order_body(address, catalog):
    return {
        "items": [
            {"product_id": "prod-mug", "quantity": 2},
            {"product_id": "prod-scarf", "quantity": 1, "customization": "Initials: JS"},
        ],
        "shipping_address": address,
        "customer_notes": "Gift wrap please",
    }


def _create(client, auth, customer, body):
    response = client.post("/orders", json=body, headers=auth(customer))
    assert response.status_code == 201, response.json()
    return response.json()["data"]["order"]


class TestAuthentication:
    def test_missing_token(self, client, catalog):
        response = client.get("/orders")
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "No token, authorization denied",
            "code": "authentication_failed",
        }

    def test_invalid_token(self, client, catalog):
        response = client.get("/orders", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token(self, client, customer, catalog):
        token = issue_token(customer.user_id, "customer", expires_delta=timedelta(minutes=-1))
        response = client.get("/orders", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_unknown_role(self, client, catalog):
        token = issue_token("someone", "superuser")
        response = client.get("/orders", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestCreateOrder:
    def test_creates_split_order(self, client, auth, customer, order_body):
        order = _create(client, auth, customer, order_body)

        assert order["order_number"].startswith("AM")
        assert order["status"] == "pending"
        assert order["summary"]["total"] == 90.0
        assert order["summary"]["total_commission"] == 11.0
        assert [vo["vendor_id"] for vo in order["vendor_orders"]] == ["vendor-potter", "vendor-weaver"]
        assert order["vendor_orders"][1]["items"][0]["customization"] == "Initials: JS"
        assert order["billing_address"] == order["shipping_address"]
        assert order["payment_info"]["status"] == "pending"

    def test_insufficient_stock(self, client, auth, customer, order_body):
        order_body["items"][1]["quantity"] = 9
        response = client.post("/orders", json=order_body, headers=auth(customer))

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "insufficient_stock"
        assert body["details"][0]["product_id"] == "prod-scarf"

    def test_unavailable_product(self, client, auth, customer, order_body):
        order_body["items"].append({"product_id": "prod-retired", "quantity": 1})
        response = client.post("/orders", json=order_body, headers=auth(customer))

        assert response.status_code == 400
        assert response.json()["details"] == {"product_ids": ["prod-retired"]}

    def test_malformed_body(self, client, auth, customer, order_body):
        order_body["items"][0]["quantity"] = 0
        del order_body["shipping_address"]["city"]
        response = client.post("/orders", json=order_body, headers=auth(customer))

        assert response.status_code == 400
        errors = response.json()["errors"]
        assert "items.0.quantity" in errors
        assert "shipping_address.city" in errors

    def test_empty_items(self, client, auth, customer, order_body):
        order_body["items"] = []
        response = client.post("/orders", json=order_body, headers=auth(customer))
        assert response.status_code == 400

    def test_vendor_cannot_order(self, client, auth, potter, order_body):
        response = client.post("/orders", json=order_body, headers=auth(potter))
        assert response.status_code == 403
        assert response.json()["code"] == "access_denied"


class TestReadOrders:
    def test_list_with_pagination(self, client, auth, customer, order_body):
        _create(client, auth, customer, order_body)

        response = client.get("/orders", params={"limit": 5}, headers=auth(customer))

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["orders"]) == 1
        assert data["pagination"] == {
            "current_page": 1,
            "total_pages": 1,
            "total_orders": 1,
            "has_next_page": False,
            "has_prev_page": False,
            "limit": 5,
        }

    def test_limit_above_maximum_is_rejected(self, client, auth, customer, catalog):
        response = client.get("/orders", params={"limit": 51}, headers=auth(customer))
        assert response.status_code == 400

    def test_vendor_sees_only_own_sub_order(self, client, auth, customer, weaver, order_body):
        order = _create(client, auth, customer, order_body)

        response = client.get(f"/orders/{order['id']}", headers=auth(weaver))

        assert response.status_code == 200
        vendor_orders = response.json()["data"]["order"]["vendor_orders"]
        assert [vo["vendor_id"] for vo in vendor_orders] == ["vendor-weaver"]

    def test_other_customer_is_denied(self, client, auth, customer, other_customer, order_body):
        order = _create(client, auth, customer, order_body)
        response = client.get(f"/orders/{order['id']}", headers=auth(other_customer))
        assert response.status_code == 403

    def test_unknown_order(self, client, auth, customer, catalog):
        response = client.get("/orders/nope", headers=auth(customer))
        assert response.status_code == 404
        assert response.json()["message"] == "Order not found"


class TestVendorStatus:
    def test_vendor_ships_with_tracking(self, client, auth, customer, potter, order_body):
        order = _create(client, auth, customer, order_body)
        client.put(f"/orders/{order['id']}/vendor-status", json={"status": "confirmed"}, headers=auth(potter))

        response = client.put(
            f"/orders/{order['id']}/vendor-status",
            json={"status": "shipped", "tracking_number": "1Z999", "estimated_delivery": "2030-01-15T12:00:00Z"},
            headers=auth(potter),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Vendor order status updated successfully"
        (vendor_order,) = body["data"]["order"]["vendor_orders"]
        assert vendor_order["status"] == "shipped"
        assert vendor_order["tracking_number"] == "1Z999"
        assert body["data"]["order"]["status"] == "partially_shipped"

    def test_tracking_added_after_shipping(self, client, auth, customer, potter, order_body):
        order = _create(client, auth, customer, order_body)
        url = f"/orders/{order['id']}/vendor-status"
        client.put(url, json={"status": "confirmed"}, headers=auth(potter))
        client.put(url, json={"status": "shipped"}, headers=auth(potter))

        response = client.put(url, json={"status": "shipped", "tracking_number": "1Z-NEW"}, headers=auth(potter))

        assert response.status_code == 200
        (vendor_order,) = response.json()["data"]["order"]["vendor_orders"]
        assert vendor_order["tracking_number"] == "1Z-NEW"
        assert vendor_order["status"] == "shipped"

    def test_invalid_transition(self, client, auth, customer, potter, order_body):
        order = _create(client, auth, customer, order_body)
        response = client.put(
            f"/orders/{order['id']}/vendor-status", json={"status": "delivered"}, headers=auth(potter)
        )
        assert response.status_code == 400
        assert response.json()["code"] == "state_conflict"

    def test_pending_is_not_settable(self, client, auth, customer, potter, order_body):
        order = _create(client, auth, customer, order_body)
        response = client.put(f"/orders/{order['id']}/vendor-status", json={"status": "pending"}, headers=auth(potter))
        assert response.status_code == 400
        assert response.json()["code"] == "validation_failed"
        assert "status" in response.json()["errors"]

    def test_vendor_not_on_order(self, client, auth, customer, order_body):
        from marketplace.access.policy import Principal, Role

        order = _create(client, auth, customer, order_body)
        stranger = Principal(user_id="vendor-glass", role=Role.VENDOR)
        response = client.put(
            f"/orders/{order['id']}/vendor-status", json={"status": "confirmed"}, headers=auth(stranger)
        )
        assert response.status_code == 404


class TestCancelOrder:
    def test_customer_cancels(self, client, auth, customer, order_body, product_stock):
        order = _create(client, auth, customer, order_body)

        response = client.put(f"/orders/{order['id']}/cancel", json={"reason": "Changed my mind"}, headers=auth(customer))

        assert response.status_code == 200
        cancelled = response.json()["data"]["order"]
        assert cancelled["status"] == "cancelled"
        assert cancelled["cancel_reason"] == "Changed my mind"
        assert product_stock("prod-mug") == (5, 0)

    def test_cancel_without_body(self, client, auth, customer, order_body):
        order = _create(client, auth, customer, order_body)
        response = client.put(f"/orders/{order['id']}/cancel", headers=auth(customer))
        assert response.status_code == 200

    def test_second_cancel_conflicts(self, client, auth, customer, order_body):
        order = _create(client, auth, customer, order_body)
        client.put(f"/orders/{order['id']}/cancel", json={}, headers=auth(customer))
        response = client.put(f"/orders/{order['id']}/cancel", json={}, headers=auth(customer))
        assert response.status_code == 400

    def test_reason_too_long(self, client, auth, customer, order_body):
        order = _create(client, auth, customer, order_body)
        response = client.put(f"/orders/{order['id']}/cancel", json={"reason": "x" * 501}, headers=auth(customer))
        assert response.status_code == 400
