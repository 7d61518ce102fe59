"""
Order lifecycle: creation, status transitions and emergency SLA tracking.

pending -> confirmed -> preparing -> out_for_delivery -> delivered
pending / confirmed / preparing -> cancelled

Every status write is a conditional UPDATE on (id, current status) so two
concurrent transitions of the same order cannot both succeed. Order creation
and the stock decrements of its lines commit as a single unit.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging
import secrets
import string
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config import EMERGENCY_SLA_MINUTES
from models import Order, Product, SupplierProfile, VendorProfile, UserProfile, utcnow
from services.geo import validate_coordinates
from utils.exceptions import (
    InsufficientStock, InvalidTransition, OrderNotFound, SupplierNotFound,
    VendorNotFound, ValidationError, DuplicateOrderNumber, StorageError
)
from utils.response_helpers import parse_uuid

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
ACTIVE_STATUSES = tuple(s for s in OrderStatus if s not in TERMINAL_STATUSES)

ALLOWED_TRANSITIONS: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

ORDER_NUMBER_ALPHABET = string.digits + string.ascii_uppercase
ORDER_NUMBER_SUFFIX_LENGTH = 5
DEFAULT_DELIVERY_MINUTES = 30


def parse_status(value: Any) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Unknown order status '{value}'. Expected one of: {allowed}", field="status")


def can_transition(current: Any, target: Any) -> bool:
    try:
        current_status = OrderStatus(current)
        target_status = OrderStatus(target)
    except ValueError:
        return False
    return target_status in ALLOWED_TRANSITIONS[current_status]


def ensure_transition(current: Any, target: Any) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(getattr(current, "value", str(current)), getattr(target, "value", str(target)))


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (as returned by some drivers) as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_overdue(order: Any, now: Optional[datetime] = None, sla_minutes: int = EMERGENCY_SLA_MINUTES) -> bool:
    """
    An emergency order is overdue once it has been open longer than the SLA.
    Derived on read, never stored.
    """
    if not getattr(order, "is_emergency", False):
        return False
    if order.status in {s.value for s in TERMINAL_STATUSES}:
        return False
    created_at = as_utc(order.created_at)
    if created_at is None:
        return False
    now = as_utc(now) if now else datetime.now(timezone.utc)
    return now - created_at > timedelta(minutes=sla_minutes)


def generate_order_number(now: Optional[datetime] = None) -> str:
    """ORD-<epoch milliseconds>-<5 random base36 characters>"""
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH))
    return f"ORD-{millis}-{suffix}"


def _item_field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def build_line_items(
    requested_items: Iterable[Any],
    products: Dict[uuid.UUID, Product],
    supplier_id: uuid.UUID,
) -> Tuple[List[Dict[str, Any]], float]:
    """
    Snapshot each requested line against the current product row.

    Returns the JSON-ready line items and the order total. Prices are read from
    the product; a caller-supplied price must match it.
    """
    items = []
    errors = []
    for index, requested in enumerate(requested_items):
        field = f"items[{index}]"
        product_id = parse_uuid(_item_field(requested, "product_id"))
        product = products.get(product_id) if product_id else None
        if product is None:
            errors.append({"field": f"{field}.product_id", "message": "Product not found"})
            continue

        quantity = _item_field(requested, "quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            errors.append({"field": f"{field}.quantity", "message": "Quantity must be a positive integer"})
            continue

        if product.supplier_profile_id != supplier_id:
            errors.append({"field": f"{field}.product_id", "message": "Product is not sold by this supplier"})
            continue
        if not product.is_available:
            errors.append({"field": f"{field}.product_id", "message": f"{product.name} is not available"})
            continue
        if quantity < product.minimum_order_quantity:
            errors.append({
                "field": f"{field}.quantity",
                "message": f"Minimum order quantity is {product.minimum_order_quantity} {product.unit}"
            })
            continue

        quoted_price = _item_field(requested, "price_per_unit")
        if quoted_price is not None and round(float(quoted_price), 2) != round(product.price_per_unit, 2):
            errors.append({
                "field": f"{field}.price_per_unit",
                "message": f"Price has changed to {product.price_per_unit} per {product.unit}"
            })
            continue

        line_total = round(quantity * product.price_per_unit, 2)
        items.append({
            "product_id": str(product.id),
            "product_name": product.name,
            "unit": product.unit,
            "quantity": quantity,
            "price_per_unit": product.price_per_unit,
            "line_total": line_total,
        })

    if errors:
        raise ValidationError("Invalid order items", errors=errors)

    total_amount = round(sum(item["line_total"] for item in items), 2)
    return items, total_amount


@dataclass
class OrderWithDetails:
    order: Order
    vendor: VendorProfile
    vendor_user: UserProfile
    supplier: SupplierProfile
    supplier_user: UserProfile
    is_overdue: bool = False


class OrderLifecycleManager:
    """Owns order creation and the valid status transitions of an order"""

    def __init__(
        self,
        db: AsyncSession,
        sla_minutes: int = EMERGENCY_SLA_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.sla_minutes = sla_minutes
        self.clock = clock

    # =================
    # CREATION
    # =================

    async def create_order(
        self,
        vendor_id: Any,
        supplier_id: Any,
        items: List[Any],
        delivery_address: str,
        is_emergency: bool = False,
        notes: Optional[str] = None,
        delivery_latitude: Optional[float] = None,
        delivery_longitude: Optional[float] = None,
        voice_notes: Optional[List[str]] = None,
    ) -> Order:
        if not items:
            raise ValidationError("At least one item is required", field="items")
        if not delivery_address or not delivery_address.strip():
            raise ValidationError("Delivery address is required", field="delivery_address")
        if delivery_latitude is not None or delivery_longitude is not None:
            delivery_latitude, delivery_longitude = validate_coordinates(delivery_latitude, delivery_longitude)

        vendor_uuid = parse_uuid(vendor_id)
        supplier_uuid = parse_uuid(supplier_id)

        try:
            vendor = await self.db.get(VendorProfile, vendor_uuid) if vendor_uuid else None
            if not vendor:
                raise VendorNotFound()
            supplier = await self.db.get(SupplierProfile, supplier_uuid) if supplier_uuid else None
            if not supplier:
                raise SupplierNotFound()

            product_ids = {pid for pid in (parse_uuid(_item_field(i, "product_id")) for i in items) if pid}
            products = {}
            if product_ids:
                result = await self.db.execute(select(Product).where(Product.id.in_(product_ids)))
                products = {product.id: product for product in result.scalars().all()}

            line_items, total_amount = build_line_items(items, products, supplier.id)
            stock_snapshot = {pid: product.stock_quantity for pid, product in products.items()}
            now = self.clock()

            for line in line_items:
                product_uuid = uuid.UUID(line["product_id"])
                result = await self.db.execute(
                    update(Product)
                    .where(
                        Product.id == product_uuid,
                        Product.stock_quantity >= line["quantity"]
                    )
                    .values(
                        stock_quantity=Product.stock_quantity - line["quantity"],
                        updated_at=now
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InsufficientStock(line["product_id"], line["quantity"], stock_snapshot.get(product_uuid))

            order = Order(
                vendor_profile_id=vendor.id,
                supplier_profile_id=supplier.id,
                order_number=generate_order_number(now),
                items=line_items,
                total_amount=total_amount,
                status=OrderStatus.PENDING.value,
                is_emergency=bool(is_emergency),
                delivery_address=delivery_address.strip(),
                delivery_latitude=delivery_latitude,
                delivery_longitude=delivery_longitude,
                voice_notes=voice_notes,
                notes=notes,
                created_at=now,
                updated_at=now
            )
            self.db.add(order)
            await self.db.commit()

        except (ValidationError, VendorNotFound, SupplierNotFound, InsufficientStock):
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            if "order_number" in str(e.orig):
                logger.error(f"Order number collision for vendor {vendor_id}")
                raise DuplicateOrderNumber()
            logger.error(f"Integrity error creating order: {str(e)}")
            raise StorageError("Failed to create order")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating order: {str(e)}")
            raise StorageError("Failed to create order")

        await self.db.refresh(order)
        logger.info(
            f"Created order {order.order_number} ({'emergency' if order.is_emergency else 'regular'}) "
            f"for vendor {order.vendor_profile_id} with supplier {order.supplier_profile_id}: "
            f"{len(line_items)} items, total {total_amount}"
        )
        return order

    # =================
    # TRANSITIONS
    # =================

    async def update_order_status(self, order_id: Any, target_status: Any) -> Order:
        target = parse_status(target_status)
        order_uuid = parse_uuid(order_id)
        if order_uuid is None:
            raise OrderNotFound()

        try:
            result = await self.db.execute(select(Order).where(Order.id == order_uuid))
            order = result.scalar_one_or_none()
            if not order:
                raise OrderNotFound()

            current = OrderStatus(order.status)
            try:
                ensure_transition(current, target)
            except InvalidTransition:
                logger.warning(f"Rejected transition {current.value} -> {target.value} for order {order.id}")
                raise

            now = self.clock()
            values = {"status": target.value, "updated_at": now}

            if current is OrderStatus.PREPARING and target is OrderStatus.OUT_FOR_DELIVERY:
                if order.estimated_delivery_time is None:
                    supplier = await self.db.get(SupplierProfile, order.supplier_profile_id)
                    minutes = supplier.avg_delivery_time_minutes if supplier else DEFAULT_DELIVERY_MINUTES
                    values["estimated_delivery_time"] = now + timedelta(minutes=minutes)
            elif target is OrderStatus.DELIVERED:
                values["actual_delivery_time"] = now

            result = await self.db.execute(
                update(Order)
                .where(
                    Order.id == order.id,
                    Order.status == current.value
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Another request moved the order first
                await self.db.rollback()
                fresh = await self.db.execute(select(Order.status).where(Order.id == order_uuid))
                fresh_status = fresh.scalar_one_or_none()
                if fresh_status is None:
                    raise OrderNotFound()
                logger.warning(f"Concurrent status change on order {order_uuid}: now {fresh_status}")
                raise InvalidTransition(fresh_status, target.value)

            await self.db.commit()

        except (OrderNotFound, InvalidTransition):
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error updating order {order_id}: {str(e)}")
            raise StorageError("Failed to update order status")

        result = await self.db.execute(
            select(Order).where(Order.id == order_uuid).execution_options(populate_existing=True)
        )
        order = result.scalar_one()
        logger.info(f"Order {order.order_number} moved {current.value} -> {target.value}")
        return order

    # =================
    # READS
    # =================

    def _details_query(self):
        return select(Order).options(
            selectinload(Order.vendor_profile).selectinload(VendorProfile.user_profile),
            selectinload(Order.supplier_profile).selectinload(SupplierProfile.user_profile),
        ).execution_options(populate_existing=True)

    def _with_details(self, order: Order, now: Optional[datetime] = None) -> OrderWithDetails:
        return OrderWithDetails(
            order=order,
            vendor=order.vendor_profile,
            vendor_user=order.vendor_profile.user_profile,
            supplier=order.supplier_profile,
            supplier_user=order.supplier_profile.user_profile,
            is_overdue=is_overdue(order, now or self.clock(), self.sla_minutes),
        )

    async def get_order(self, order_id: Any) -> OrderWithDetails:
        order_uuid = parse_uuid(order_id)
        if order_uuid is None:
            raise OrderNotFound()
        result = await self.db.execute(self._details_query().where(Order.id == order_uuid))
        order = result.scalar_one_or_none()
        if not order:
            raise OrderNotFound()
        return self._with_details(order)

    async def _list(self, query) -> List[OrderWithDetails]:
        result = await self.db.execute(query)
        now = self.clock()
        return [self._with_details(order, now) for order in result.scalars().all()]

    async def list_vendor_orders(self, vendor_id: Any) -> List[OrderWithDetails]:
        vendor_uuid = parse_uuid(vendor_id)
        if vendor_uuid is None:
            raise VendorNotFound()
        return await self._list(
            self._details_query()
            .where(Order.vendor_profile_id == vendor_uuid)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )

    async def list_supplier_orders(self, supplier_id: Any) -> List[OrderWithDetails]:
        supplier_uuid = parse_uuid(supplier_id)
        if supplier_uuid is None:
            raise SupplierNotFound()
        return await self._list(
            self._details_query()
            .where(Order.supplier_profile_id == supplier_uuid)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )

    async def get_emergency_orders(self) -> List[OrderWithDetails]:
        """Open emergency orders, oldest (most overdue) first"""
        return await self._list(
            self._details_query()
            .where(
                Order.is_emergency == True,
                Order.status.in_([s.value for s in ACTIVE_STATUSES])
            )
            .order_by(Order.created_at.asc(), Order.id.asc())
        )
