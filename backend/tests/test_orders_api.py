"""
Order API tests.

Verifies:
- Checkout validation, date rules and pricing
- Guest checkout
- Order number retry on collision
- Owner/admin access rules
- Cancellation window and admin status changes
- Revenue statistics
"""

from datetime import timedelta

import pytest

from rentmoment.models import Order
from rentmoment.services import order_service
from rentmoment.time_utils import utcnow


def _line(product, quantity=1, rental_duration=1):
    return {"product_id": product.id, "quantity": quantity, "rental_duration": rental_duration}


@pytest.fixture
def place_order(client, order_payload):
    """Place an order as the given headers (None = guest) and return its JSON."""
    def _place(headers, items, **overrides):
        url = '/api/orders' if headers else '/api/orders/guest'
        response = client.post(url, json=order_payload(items, **overrides), headers=headers or {})
        assert response.status_code == 201, response.get_json()
        return response.get_json()['data']['order']
    return _place


class TestCreateOrder:
    def test_totals_with_free_shipping(self, client, customer_headers, make_product, dresses, order_payload):
        dress = make_product([dresses], name="Dress", price_cents=4000)
        jacket = make_product([dresses], name="Jacket", price_cents=3500)

        response = client.post(
            '/api/orders',
            json=order_payload([_line(dress), _line(jacket, quantity=2)]),
            headers=customer_headers,
        )

        assert response.status_code == 201
        order = response.get_json()['data']['order']
        assert order['subtotal_cents'] == 11000
        assert order['shipping_cents'] == 0
        assert order['tax_cents'] == 880
        assert order['total_cents'] == 11880
        assert order['order_status'] == "Pending"
        assert order['payment_status'] == "Pending"
        assert order['is_guest_order'] is False
        assert order['user']['email'] == "alice@example.com"
        assert order['shipping_address']['zip_code'] == "62701"

    def test_flat_shipping_under_threshold(self, customer_headers, make_product, dresses, place_order):
        gown = make_product([dresses], price_cents=6000)

        order = place_order(customer_headers, [_line(gown)])

        assert (order['subtotal_cents'], order['shipping_cents'], order['tax_cents'], order['total_cents']) == (
            6000, 1000, 480, 7480,
        )

    def test_requested_duration_is_ignored(self, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product, rental_duration=5)])

        assert order['items'][0]['rental_duration'] == 1
        assert order['items'][0]['line_total_cents'] == 4000

    def test_order_number_format(self, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        assert order['order_number'] == order['order_number'].upper()
        assert order['order_number'].startswith(f"ORD{utcnow():%y%m%d}")

    def test_requires_token(self, client, db_session, product, order_payload):
        response = client.post('/api/orders', json=order_payload([_line(product)]))
        assert response.status_code == 401

    def test_every_invalid_field_is_reported(self, client, customer_headers, order_payload):
        body = order_payload(
            [{"product_id": "x", "quantity": 0}],
            payment_method="Bitcoin",
            rental_start_date="tomorrow",
        )
        body['shipping_address'].pop('zip_code')

        response = client.post('/api/orders', json=body, headers=customer_headers)

        assert response.status_code == 400
        errors = response.get_json()['errors']
        fields = {e['field'] for e in errors}
        assert fields == {
            "items[0].product_id", "items[0].quantity", "items[0].rental_duration",
            "shipping_address.zip_code", "payment_method", "rental_start_date",
        }
        assert {"field": "shipping_address.zip_code", "message": "Shipping zip code is required"} in errors

    def test_empty_items(self, client, customer_headers, order_payload):
        response = client.post('/api/orders', json=order_payload([]), headers=customer_headers)

        assert response.status_code == 400
        assert response.get_json()['errors'][0]['field'] == "items"

    def test_oversized_numbers_are_field_errors(self, client, db_session, customer_headers, product, order_payload):
        body = order_payload([
            {"product_id": product.id, "quantity": 10**16, "rental_duration": 1},
            {"product_id": 10**20, "quantity": 1, "rental_duration": 10**6},
        ])

        response = client.post('/api/orders', json=body, headers=customer_headers)

        assert response.status_code == 400
        fields = {e['field'] for e in response.get_json()['errors']}
        assert fields == {"items[0].quantity", "items[1].product_id", "items[1].rental_duration"}
        assert db_session.query(Order).count() == 0

    def test_end_before_start_writes_nothing(self, client, db_session, customer_headers, product, order_payload):
        start = (utcnow() + timedelta(days=3)).date()
        body = order_payload(
            [_line(product)],
            rental_start_date=start.isoformat(),
            rental_end_date=start.isoformat(),
        )

        response = client.post('/api/orders', json=body, headers=customer_headers)

        assert response.status_code == 400
        assert response.get_json()['message'] == "Rental end date must be after start date"
        assert db_session.query(Order).count() == 0

    def test_start_in_the_past(self, client, customer_headers, product, order_payload):
        yesterday = (utcnow() - timedelta(days=1)).date()

        response = client.post(
            '/api/orders',
            json=order_payload([_line(product)], rental_start_date=yesterday.isoformat()),
            headers=customer_headers,
        )

        assert response.status_code == 400
        assert response.get_json()['message'] == "Rental start date cannot be in the past"

    def test_unavailable_product(self, client, db_session, customer_headers, make_product, dresses, order_payload):
        retired = make_product([dresses], name="Retired Gown", is_available=False)

        response = client.post('/api/orders', json=order_payload([_line(retired)]), headers=customer_headers)

        assert response.status_code == 400
        body = response.get_json()
        assert body['message'] == "Product Retired Gown is not available"
        assert body['details'] == {"product_id": retired.id}
        assert db_session.query(Order).count() == 0

    def test_unknown_product(self, client, customer_headers, order_payload, db_session):
        response = client.post(
            '/api/orders',
            json=order_payload([{"product_id": 999, "quantity": 1, "rental_duration": 1}]),
            headers=customer_headers,
        )

        assert response.status_code == 400
        assert response.get_json()['message'] == "Product with ID 999 not found"

    def test_price_snapshot_survives_catalog_edit(self, client, db_session, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        product.price_cents = 9999
        product.name = "Renamed Dress"
        db_session.commit()

        response = client.get(f"/api/orders/{order['id']}", headers=customer_headers)
        item = response.get_json()['data']['order']['items'][0]
        assert item['unit_price_cents'] == 4000
        assert item['product_name'] == "Red Dress"


class TestGuestOrder:
    def test_guest_checkout(self, product, place_order):
        order = place_order(None, [_line(product)])

        assert order['is_guest_order'] is True
        assert order['user'] is None

    def test_guest_order_not_visible_to_customers(self, client, customer_headers, product, place_order):
        order = place_order(None, [_line(product)])

        response = client.get(f"/api/orders/{order['id']}", headers=customer_headers)
        assert response.status_code == 403


class TestOrderNumberRetry:
    def test_collision_is_retried(self, monkeypatch, customer_headers, product, place_order):
        numbers = iter(["ORD000000001", "ORD000000001", "ORD000000002"])
        monkeypatch.setattr(order_service, "generate_order_number", lambda: next(numbers))

        first = place_order(customer_headers, [_line(product)])
        second = place_order(customer_headers, [_line(product)])

        assert first['order_number'] == "ORD000000001"
        assert second['order_number'] == "ORD000000002"

    def test_gives_up_after_repeated_collisions(self, monkeypatch, client, db_session, customer_headers,
                                                product, place_order, order_payload):
        monkeypatch.setattr(order_service, "generate_order_number", lambda: "ORD000000001")
        place_order(customer_headers, [_line(product)])

        response = client.post('/api/orders', json=order_payload([_line(product)]), headers=customer_headers)

        assert response.status_code == 409
        assert db_session.query(Order).count() == 1


class TestOrderAccess:
    def test_owner_can_read(self, client, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.get(f"/api/orders/{order['id']}", headers=customer_headers)

        assert response.status_code == 200
        assert response.get_json()['data']['order']['order_number'] == order['order_number']

    def test_other_customer_is_denied(self, client, customer_headers, other_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.get(f"/api/orders/{order['id']}", headers=other_headers)

        assert response.status_code == 403
        assert response.get_json()['message'] == "Access denied"

    def test_admin_can_read_any(self, client, admin_headers, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.get(f"/api/orders/{order['id']}", headers=admin_headers)
        assert response.status_code == 200

    def test_missing_order(self, client, customer_headers):
        response = client.get('/api/orders/999', headers=customer_headers)
        assert response.status_code == 404

    def test_list_is_scoped_to_owner(self, client, admin_headers, customer_headers, other_headers,
                                     product, place_order):
        place_order(customer_headers, [_line(product)])
        place_order(customer_headers, [_line(product)])
        place_order(other_headers, [_line(product)])

        mine = client.get('/api/orders', headers=customer_headers).get_json()['data']
        everyone = client.get('/api/orders', headers=admin_headers).get_json()['data']

        assert mine['total'] == 2
        assert {o['user']['email'] for o in mine['items']} == {"alice@example.com"}
        assert everyone['total'] == 3

    def test_list_status_filter(self, client, admin_headers, customer_headers, product, place_order):
        first = place_order(customer_headers, [_line(product)])
        place_order(customer_headers, [_line(product)])
        client.put(f"/api/orders/{first['id']}/cancel", headers=customer_headers)

        data = client.get('/api/orders?status=Cancelled', headers=admin_headers).get_json()['data']

        assert [o['id'] for o in data['items']] == [first['id']]


class TestCancelOrder:
    def test_owner_cancels_pending(self, client, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.put(f"/api/orders/{order['id']}/cancel", headers=customer_headers)

        assert response.status_code == 200
        body = response.get_json()['data']['order']
        assert body['order_status'] == "Cancelled"
        assert body['admin_notes'] is None

    def test_shipped_order_cannot_be_cancelled(self, client, admin_headers, customer_headers,
                                               product, place_order):
        order = place_order(customer_headers, [_line(product)])
        client.put(f"/api/orders/{order['id']}/status", json={"order_status": "Shipped"}, headers=admin_headers)

        response = client.put(f"/api/orders/{order['id']}/cancel", headers=customer_headers)

        assert response.status_code == 400
        assert response.get_json()['message'] == "Order cannot be cancelled in its current status"

    def test_confirmed_order_can_be_cancelled(self, client, admin_headers, customer_headers,
                                              product, place_order):
        order = place_order(customer_headers, [_line(product)])
        client.put(f"/api/orders/{order['id']}/status", json={"order_status": "Confirmed"}, headers=admin_headers)

        response = client.put(f"/api/orders/{order['id']}/cancel", headers=customer_headers)
        assert response.status_code == 200

    def test_admin_cancel_records_default_note(self, client, admin_headers, customer_headers,
                                               product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.put(f"/api/orders/{order['id']}/cancel", headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['data']['order']['admin_notes'] == "Order cancelled by admin"

    def test_admin_cancel_with_note(self, client, admin_headers, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.put(
            f"/api/orders/{order['id']}/cancel",
            json={"admin_notes": "Customer called"},
            headers=admin_headers,
        )

        assert response.get_json()['data']['order']['admin_notes'] == "Customer called"

    def test_other_customer_cannot_cancel(self, client, customer_headers, other_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.put(f"/api/orders/{order['id']}/cancel", headers=other_headers)
        assert response.status_code == 403


class TestOrderStatus:
    def test_admin_updates_status_and_payment(self, client, admin_headers, customer_headers,
                                              product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.put(
            f"/api/orders/{order['id']}/status",
            json={"order_status": "Delivered", "payment_status": "Paid", "admin_notes": "Handed over"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.get_json()['data']['order']
        assert (body['order_status'], body['payment_status'], body['admin_notes']) == (
            "Delivered", "Paid", "Handed over",
        )

    def test_customer_cannot_update_status(self, client, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.put(
            f"/api/orders/{order['id']}/status",
            json={"order_status": "Delivered"},
            headers=customer_headers,
        )
        assert response.status_code == 403

    def test_unknown_status_is_rejected(self, client, admin_headers, customer_headers, product, place_order):
        order = place_order(customer_headers, [_line(product)])

        response = client.put(
            f"/api/orders/{order['id']}/status",
            json={"order_status": "Lost"},
            headers=admin_headers,
        )
        assert response.status_code == 400


class TestOrderStats:
    def _set(self, client, headers, order, **fields):
        response = client.put(f"/api/orders/{order['id']}/status", json=fields, headers=headers)
        assert response.status_code == 200

    def test_revenue_counts_delivered_or_paid(self, client, admin_headers, customer_headers,
                                              make_product, dresses, place_order):
        gown = make_product([dresses], price_cents=6000)  # total 7480
        lines = [_line(gown)]

        delivered = place_order(customer_headers, lines)
        paid = place_order(customer_headers, lines)
        refunded = place_order(customer_headers, lines)
        cancelled_paid = place_order(customer_headers, lines)
        place_order(customer_headers, lines)  # still pending

        self._set(client, admin_headers, delivered, order_status="Delivered")
        self._set(client, admin_headers, paid, order_status="Confirmed", payment_status="Paid")
        self._set(client, admin_headers, refunded, order_status="Delivered", payment_status="Refunded")
        self._set(client, admin_headers, cancelled_paid, order_status="Cancelled", payment_status="Paid")

        response = client.get('/api/orders/stats/summary', headers=admin_headers)

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['summary'] == {
            "total_orders": 5,
            "pending_orders": 1,
            "completed_orders": 2,
            "cancelled_orders": 1,
            "total_revenue_cents": 7480 * 2,
        }
        assert len(data['recent_orders']) == 5

    def test_stats_are_admin_only(self, client, customer_headers):
        response = client.get('/api/orders/stats/summary', headers=customer_headers)
        assert response.status_code == 403
