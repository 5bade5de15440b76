"""Tests for order validation, lifecycle and queries"""

import time
from pathlib import Path

import pytest

from commerce.models.order import Order
from commerce.services.order_store import OrderStore
from commerce.stores.file_store import FileStore
from commerce.utils.exceptions import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def orders(tmp_path: Path) -> OrderStore:
    store = OrderStore(FileStore(tmp_path / "orders.json", "orders", model=Order))
    store.initialize()
    return store


def _order_data(**overrides):
    data = {
        "userId": "u1",
        "items": [
            {"productId": "p1", "name": "Lamp", "price": 10.0, "quantity": 2},
            {"productId": "p2", "name": "Desk", "price": 5.5, "quantity": 1},
        ],
        "shippingAddress": {"street": "1 Main St", "city": "Springfield"},
    }
    data.update(overrides)
    return data


def test_create_order_defaults(orders):
    order = orders.create_order(_order_data())
    assert order.status.value == "pending"
    assert order.total_amount == 25.5
    assert order.billing_address == order.shipping_address
    assert order.payment_status == "pending"
    assert len(order.status_history) == 1
    assert order.status_history[0].note == "Order created"
    assert orders.get_by_id(order.id).to_record() == order.to_record()


def test_invalid_quantity_rejected_before_any_write(orders):
    before = orders.store.path.read_bytes()
    with pytest.raises(ValidationError, match="invalid quantity"):
        orders.create_order(_order_data(items=[{"productId": "p1", "quantity": 0}]))
    assert orders.store.path.read_bytes() == before


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"userId": None}, "User ID is required"),
        ({"items": []}, "at least one item"),
        ({"items": [{"quantity": 1}]}, "missing productId"),
        ({"items": [{"productId": "p1", "quantity": 1.5}]}, "invalid quantity"),
        ({"items": [{"productId": "p1", "quantity": 1, "price": -1}]}, "invalid price"),
        ({"shippingAddress": None}, "Shipping address is required"),
        ({"status": "lost"}, "Invalid order status"),
    ],
)
def test_create_order_validation(orders, overrides, message):
    with pytest.raises(ValidationError, match=message):
        orders.create_order(_order_data(**overrides))
    assert orders.get_all() == []


def test_status_update_appends_one_history_entry(orders):
    order = orders.create_order(_order_data())
    time.sleep(0.01)
    updated = orders.update_order_status(order.id, "shipped")

    assert updated.status.value == "shipped"
    assert len(updated.status_history) == 2
    assert updated.status_history[-1].status.value == "shipped"
    assert updated.status_history[-1].note == "Status changed to shipped"
    assert updated.created_at == order.created_at
    assert updated.updated_at != order.updated_at


def test_same_status_adds_no_history(orders):
    order = orders.create_order(_order_data())
    updated = orders.update_order_status(order.id, "pending")
    assert len(updated.status_history) == 1


def test_invalid_target_status_is_validation_error(orders):
    order = orders.create_order(_order_data())
    with pytest.raises(ValidationError):
        orders.update_order_status(order.id, "teleported")


@pytest.mark.parametrize(
    "path, target",
    [
        (["shipped"], "processing"),
        (["delivered"], "cancelled"),
        (["cancelled"], "pending"),
        (["processing", "shipped"], "pending"),
    ],
)
def test_disallowed_transitions(orders, path, target):
    order = orders.create_order(_order_data())
    for status in path:
        orders.update_order_status(order.id, status)
    with pytest.raises(ConflictError) as exc_info:
        orders.update_order_status(order.id, target)
    assert exc_info.value.code == "INVALID_STATUS_TRANSITION"


def test_cancel_from_processing_with_note(orders):
    order = orders.create_order(_order_data())
    orders.update_order_status(order.id, "processing")
    cancelled = orders.update_order_status(order.id, "cancelled", "Customer request")
    assert cancelled.status_history[-1].note == "Customer request"
    assert [h.status.value for h in cancelled.status_history] == ["pending", "processing", "cancelled"]


def test_update_items_recomputes_total(orders):
    order = orders.create_order(_order_data())
    updated = orders.update_order(order.id, {"items": [{"productId": "p3", "price": 4, "quantity": 3}]})
    assert updated.total_amount == 12
    assert updated.id == order.id


def test_update_unknown_order(orders):
    with pytest.raises(NotFoundError):
        orders.update_order("missing", {"notes": "x"})


def test_item_operations(orders):
    order = orders.create_order(_order_data())

    order = orders.add_order_item(order.id, {"productId": "p9", "name": "Mug", "price": 3})
    assert order.items[-1].quantity == 1
    assert order.total_amount == 28.5

    order = orders.update_order_item(order.id, "p9", {"quantity": 4})
    assert order.total_amount == 37.5

    order = orders.remove_order_item(order.id, "p1")
    assert [i.product_id for i in order.items] == ["p2", "p9"]
    assert order.total_amount == 17.5


def test_cannot_remove_last_item(orders):
    order = orders.create_order(_order_data(items=[{"productId": "p1", "price": 1, "quantity": 1}]))
    with pytest.raises(ValidationError, match="last item"):
        orders.remove_order_item(order.id, "p1")


def test_items_locked_on_terminal_orders(orders):
    order = orders.create_order(_order_data())
    orders.update_order_status(order.id, "delivered")
    with pytest.raises(ConflictError):
        orders.add_order_item(order.id, {"productId": "p9", "name": "Mug", "price": 3})
    with pytest.raises(ConflictError):
        orders.update_order_item(order.id, "p1", {"quantity": 5})


def test_add_item_requires_fields(orders):
    order = orders.create_order(_order_data())
    with pytest.raises(ValidationError, match="productId, name, and price"):
        orders.add_order_item(order.id, {"productId": "p9"})


def test_queries(orders):
    first = orders.create_order(_order_data(userId="u1"))
    time.sleep(0.01)
    second = orders.create_order(_order_data(userId="u2", items=[{"productId": "p7", "quantity": 1}]))
    time.sleep(0.01)
    third = orders.create_order(_order_data(userId="u1"))
    orders.update_order_status(third.id, "processing")

    assert {o.id for o in orders.get_by_user("u1")} == {first.id, third.id}
    assert [o.id for o in orders.get_by_status("processing")] == [third.id]
    assert [o.id for o in orders.search(product_id="p7")] == [second.id]
    assert [o.id for o in orders.search(user_id="u1", status="pending")] == [first.id]
    assert orders.search(start_date="2999-01-01") == []
    assert orders.count_by_status() == {
        "pending": 2,
        "processing": 1,
        "shipped": 0,
        "delivered": 0,
        "cancelled": 0,
    }
    assert [o.id for o in orders.user_order_history("u1")] == [third.id, first.id]
    assert [o.id for o in orders.recent_orders(2)] == [third.id, second.id]


def test_delete_order(orders):
    order = orders.create_order(_order_data())
    assert orders.delete(order.id) is True
    assert orders.delete(order.id) is False
    assert orders.get_by_id(order.id) is None
