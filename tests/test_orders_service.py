from datetime import timedelta
import uuid

import pytest
from sqlalchemy import select, update

from conftest import VENDOR_POINT, km_north
from models import Order, Product
from services.order_lifecycle import OrderLifecycleManager
from utils.exceptions import (
    InsufficientStock, InvalidTransition, OrderNotFound, SupplierNotFound,
    ValidationError, VendorNotFound
)


@pytest.fixture
async def market(factory):
    supplier = await factory.supplier(*km_north(VENDOR_POINT, 1.2), avg_delivery_time_minutes=25)
    vendor = await factory.vendor()
    onions = await factory.product(supplier, name="Onions", price_per_unit=30.0, stock_quantity=100)
    potatoes = await factory.product(supplier, name="Potatoes", price_per_unit=20.0, stock_quantity=3)
    # Plain ids: a rollback expires ORM instances and async sessions cannot lazy-load them
    return {
        "supplier": str(supplier.id),
        "supplier_user": supplier.user_profile_id,
        "vendor": str(vendor.id),
        "onions": str(onions.id),
        "potatoes": str(potatoes.id),
    }


async def _stock(db, product_id):
    result = await db.execute(select(Product.stock_quantity).where(Product.id == uuid.UUID(product_id)))
    return result.scalar_one()


async def _create(db, market, items, clock=None, **kwargs):
    manager = OrderLifecycleManager(db, clock=clock) if clock else OrderLifecycleManager(db)
    return await manager.create_order(
        vendor_id=market["vendor"],
        supplier_id=market["supplier"],
        items=items,
        delivery_address="Stall 12, Karol Bagh",
        **kwargs
    )


async def _walk(db, order, *statuses, clock=None):
    manager = OrderLifecycleManager(db, clock=clock) if clock else OrderLifecycleManager(db)
    for status in statuses:
        order = await manager.update_order_status(order.id, status)
    return order


# =================
# CREATION
# =================

async def test_create_order_computes_total_and_reserves_stock(db, market):
    order = await _create(db, market, [{"product_id": market["onions"], "quantity": 5}])

    assert order.status == "pending"
    assert order.total_amount == 150.0
    assert order.items[0]["line_total"] == 150.0
    assert order.order_number.startswith("ORD-")
    assert await _stock(db, market["onions"]) == 95


async def test_insufficient_stock_rolls_back_every_line(db, market):
    items = [
        {"product_id": market["onions"], "quantity": 10},
        {"product_id": market["potatoes"], "quantity": 4},
    ]
    with pytest.raises(InsufficientStock) as exc_info:
        await _create(db, market, items)

    assert exc_info.value.product_id == market["potatoes"]
    assert exc_info.value.available == 3
    assert await _stock(db, market["onions"]) == 100
    assert await _stock(db, market["potatoes"]) == 3
    assert (await db.execute(select(Order))).scalars().all() == []


async def test_stock_can_be_drained_exactly(db, market):
    await _create(db, market, [{"product_id": market["potatoes"], "quantity": 3}])
    assert await _stock(db, market["potatoes"]) == 0

    with pytest.raises(InsufficientStock):
        await _create(db, market, [{"product_id": market["potatoes"], "quantity": 1}])


async def test_create_order_rejects_bad_input(db, market, factory):
    with pytest.raises(ValidationError):
        await _create(db, market, [])

    with pytest.raises(ValidationError):
        await _create(db, market, [{"product_id": market["onions"], "quantity": 1, "price_per_unit": 28.0}])

    other_supplier = await factory.supplier(*VENDOR_POINT, name="Other")
    foreign = await factory.product(other_supplier, name="Garlic")
    with pytest.raises(ValidationError):
        await _create(db, market, [{"product_id": str(foreign.id), "quantity": 1}])

    assert await _stock(db, market["onions"]) == 100


async def test_create_order_unknown_parties(db, market):
    manager = OrderLifecycleManager(db)
    items = [{"product_id": market["onions"], "quantity": 1}]
    with pytest.raises(VendorNotFound):
        await manager.create_order("missing", market["supplier"], items, "Somewhere")
    with pytest.raises(SupplierNotFound):
        await manager.create_order(market["vendor"], "missing", items, "Somewhere")


# =================
# TRANSITIONS
# =================

async def test_happy_path_sets_delivery_timestamps(db, market, clock):
    order = await _create(db, market, [{"product_id": market["onions"], "quantity": 2}], clock=clock)

    order = await _walk(db, order, "confirmed", "preparing", clock=clock)
    assert order.estimated_delivery_time is None

    clock.advance(minutes=10)
    order = await _walk(db, order, "out_for_delivery", clock=clock)
    assert order.estimated_delivery_time.replace(tzinfo=None) == (clock.now + timedelta(minutes=25)).replace(tzinfo=None)

    clock.advance(minutes=20)
    order = await _walk(db, order, "delivered", clock=clock)
    assert order.status == "delivered"
    assert order.actual_delivery_time.replace(tzinfo=None) == clock.now.replace(tzinfo=None)


async def test_skipping_a_step_is_rejected_and_leaves_status(db, market):
    order = await _create(db, market, [{"product_id": market["onions"], "quantity": 2}])
    order = await _walk(db, order, "confirmed", "preparing")
    order_id = order.id

    with pytest.raises(InvalidTransition):
        await _walk(db, order, "delivered")

    assert not db.in_transaction()
    result = await db.execute(select(Order.status).where(Order.id == order_id))
    assert result.scalar_one() == "preparing"


async def test_unknown_order_leaves_no_open_transaction(db, market):
    with pytest.raises(OrderNotFound):
        await OrderLifecycleManager(db).update_order_status(uuid.uuid4(), "confirmed")
    assert not db.in_transaction()


async def test_cancellation_window(db, market):
    pending = await _create(db, market, [{"product_id": market["onions"], "quantity": 1}])
    assert (await _walk(db, pending, "cancelled")).status == "cancelled"

    shipped = await _create(db, market, [{"product_id": market["onions"], "quantity": 1}])
    shipped = await _walk(db, shipped, "confirmed", "preparing", "out_for_delivery")
    with pytest.raises(InvalidTransition):
        await _walk(db, shipped, "cancelled")


async def test_terminal_orders_cannot_move(db, market):
    order = await _create(db, market, [{"product_id": market["onions"], "quantity": 1}])
    order = await _walk(db, order, "cancelled")
    with pytest.raises(InvalidTransition):
        await _walk(db, order, "pending")


async def test_stale_status_loses_the_conditional_update(db, market):
    order = await _create(db, market, [{"product_id": market["onions"], "quantity": 1}])
    order = await _walk(db, order, "confirmed")
    order_id = order.id

    # Another writer cancels the order; this session still holds "confirmed"
    await db.execute(
        update(Order)
        .where(Order.id == order_id)
        .values(status="cancelled")
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    assert order.status == "confirmed"

    with pytest.raises(InvalidTransition) as exc_info:
        await OrderLifecycleManager(db).update_order_status(order_id, "preparing")

    assert exc_info.value.current_status == "cancelled"
    result = await db.execute(select(Order.status).where(Order.id == order_id))
    assert result.scalar_one() == "cancelled"


async def test_unknown_order(db):
    manager = OrderLifecycleManager(db)
    with pytest.raises(OrderNotFound):
        await manager.update_order_status("not-a-uuid", "confirmed")
    with pytest.raises(OrderNotFound):
        await manager.get_order("00000000-0000-0000-0000-000000000000")


# =================
# READS
# =================

async def test_emergency_queue_is_open_orders_oldest_first(db, market, clock):
    line = [{"product_id": market["onions"], "quantity": 1}]

    oldest = await _create(db, market, line, clock=clock, is_emergency=True)
    clock.advance(minutes=5)
    delivered = await _create(db, market, line, clock=clock, is_emergency=True)
    await _walk(db, delivered, "confirmed", "preparing", "out_for_delivery", "delivered", clock=clock)
    clock.advance(minutes=5)
    await _create(db, market, line, clock=clock)
    clock.advance(minutes=5)
    newest = await _create(db, market, line, clock=clock, is_emergency=True)
    await _walk(db, newest, "confirmed", "preparing", "out_for_delivery", clock=clock)

    clock.advance(minutes=20)
    queue = await OrderLifecycleManager(db, clock=clock).get_emergency_orders()

    assert [entry.order.id for entry in queue] == [oldest.id, newest.id]
    # oldest is 35 minutes old, newest 20
    assert [entry.is_overdue for entry in queue] == [True, False]
    assert str(queue[0].vendor.id) == market["vendor"]
    assert queue[0].supplier_user.id == market["supplier_user"]


async def test_vendor_and_supplier_listings_newest_first(db, market, clock):
    line = [{"product_id": market["onions"], "quantity": 1}]
    first = await _create(db, market, line, clock=clock)
    clock.advance(minutes=1)
    second = await _create(db, market, line, clock=clock)

    manager = OrderLifecycleManager(db, clock=clock)
    vendor_orders = await manager.list_vendor_orders(market["vendor"])
    supplier_orders = await manager.list_supplier_orders(market["supplier"])

    assert [o.order.id for o in vendor_orders] == [second.id, first.id]
    assert [o.order.id for o in supplier_orders] == [second.id, first.id]
