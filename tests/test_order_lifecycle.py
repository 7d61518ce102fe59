from datetime import timedelta
from types import SimpleNamespace
import itertools
import re
import uuid

import pytest

from conftest import BASE_TIME
from services.order_lifecycle import (
    ALLOWED_TRANSITIONS,
    OrderStatus,
    build_line_items,
    can_transition,
    ensure_transition,
    generate_order_number,
    is_overdue,
    parse_status,
)
from utils.exceptions import InvalidTransition, ValidationError

VALID_MOVES = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "preparing"),
    ("confirmed", "cancelled"),
    ("preparing", "out_for_delivery"),
    ("preparing", "cancelled"),
    ("out_for_delivery", "delivered"),
}


@pytest.mark.parametrize("current, target", list(itertools.product([s.value for s in OrderStatus], repeat=2)))
def test_transition_table(current, target):
    assert can_transition(current, target) == ((current, target) in VALID_MOVES)


def test_terminal_statuses_have_no_exits():
    assert ALLOWED_TRANSITIONS[OrderStatus.DELIVERED] == frozenset()
    assert ALLOWED_TRANSITIONS[OrderStatus.CANCELLED] == frozenset()


def test_ensure_transition_reports_both_statuses():
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_transition(OrderStatus.PREPARING, OrderStatus.DELIVERED)
    assert exc_info.value.current_status == "preparing"
    assert exc_info.value.target_status == "delivered"
    assert exc_info.value.status_code == 409


def test_unknown_statuses():
    assert not can_transition("pending", "shipped")
    with pytest.raises(ValidationError):
        parse_status("shipped")


def _order(status="preparing", is_emergency=True, minutes_old=45):
    return SimpleNamespace(
        status=status,
        is_emergency=is_emergency,
        created_at=BASE_TIME - timedelta(minutes=minutes_old),
    )


def test_emergency_order_is_overdue_after_sla():
    assert is_overdue(_order(minutes_old=45), now=BASE_TIME)


def test_overdue_needs_strictly_more_than_sla():
    assert not is_overdue(_order(minutes_old=30), now=BASE_TIME)
    assert not is_overdue(_order(minutes_old=10), now=BASE_TIME)


def test_regular_and_terminal_orders_are_never_overdue():
    assert not is_overdue(_order(is_emergency=False, minutes_old=300), now=BASE_TIME)
    assert not is_overdue(_order(status="delivered", minutes_old=300), now=BASE_TIME)
    assert not is_overdue(_order(status="cancelled", minutes_old=300), now=BASE_TIME)


def test_overdue_treats_naive_timestamps_as_utc():
    order = _order(minutes_old=45)
    order.created_at = order.created_at.replace(tzinfo=None)
    assert is_overdue(order, now=BASE_TIME)


def test_order_number_format():
    number = generate_order_number(BASE_TIME)
    millis = int(BASE_TIME.timestamp() * 1000)
    assert re.fullmatch(rf"ORD-{millis}-[0-9A-Z]{{5}}", number)


def test_order_numbers_differ():
    assert len({generate_order_number(BASE_TIME) for _ in range(50)}) > 1


# =================
# LINE ITEMS
# =================

SUPPLIER_ID = uuid.uuid4()


def _product(**overrides):
    fields = dict(
        id=uuid.uuid4(), supplier_profile_id=SUPPLIER_ID, name="Onions", unit="kg",
        price_per_unit=30.0, minimum_order_quantity=1, is_available=True,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_line_items_snapshot_price_and_total():
    onions = _product()
    oil = _product(name="Mustard oil", unit="litre", price_per_unit=152.5)
    items, total = build_line_items(
        [{"product_id": str(onions.id), "quantity": 5}, {"product_id": str(oil.id), "quantity": 2}],
        {onions.id: onions, oil.id: oil},
        SUPPLIER_ID,
    )
    assert items[0] == {
        "product_id": str(onions.id),
        "product_name": "Onions",
        "unit": "kg",
        "quantity": 5,
        "price_per_unit": 30.0,
        "line_total": 150.0,
    }
    assert total == 455.0


@pytest.mark.parametrize("product_overrides, item_overrides, field", [
    ({"minimum_order_quantity": 10}, {"quantity": 5}, "items[0].quantity"),
    ({"is_available": False}, {}, "items[0].product_id"),
    ({"supplier_profile_id": uuid.uuid4()}, {}, "items[0].product_id"),
    ({}, {"quantity": 0}, "items[0].quantity"),
    ({}, {"price_per_unit": 25.0}, "items[0].price_per_unit"),
])
def test_line_item_validation(product_overrides, item_overrides, field):
    product = _product(**product_overrides)
    item = {"product_id": str(product.id), "quantity": 5, **item_overrides}
    with pytest.raises(ValidationError) as exc_info:
        build_line_items([item], {product.id: product}, SUPPLIER_ID)
    assert [e["field"] for e in exc_info.value.errors] == [field]


def test_line_item_unknown_product():
    with pytest.raises(ValidationError) as exc_info:
        build_line_items([{"product_id": "not-a-uuid", "quantity": 1}], {}, SUPPLIER_ID)
    assert exc_info.value.errors[0]["message"] == "Product not found"
