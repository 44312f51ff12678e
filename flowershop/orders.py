from __future__ import annotations
from typing import Optional
import structlog

from flowershop.catalog import require_id
from flowershop.database import CatalogStore, create_id, utcnow
from flowershop.errors import Conflict, NotFound
from flowershop.schemas import Flower, LineItem, Order, OrderCreate, OrderStatusUpdate

logger = structlog.get_logger(__name__)


async def list_orders(store: CatalogStore) -> list[Order]:
    return [Order(**doc) for doc in await store.list_orders()]


async def place_order(store: CatalogStore, payload: OrderCreate) -> Order:
    """Check every cart line against current stock, then decrement and record.

    No stock is touched unless all lines pass, so a rejected order leaves
    the catalog exactly as it was.
    """
    flowers = {doc["id"]: Flower(**doc) for doc in await store.list_flowers()}

    line_items: list[LineItem] = []
    for flower_id, quantity in payload.merged_items():
        flower = flowers.get(flower_id)
        if flower is None:
            logger.info("order.rejected", reason="unknown_flower", flower_id=flower_id)
            raise NotFound(f"flower not found: {flower_id}")
        if flower.stock < quantity:
            logger.info("order.rejected", reason="insufficient_stock", flower_id=flower_id, requested=quantity, available=flower.stock)
            raise Conflict(f"insufficient stock for {flower.name}")
        line_items.append(LineItem(
            flower_id=flower.id,
            name=flower.name,
            unit_price=flower.price,
            quantity=quantity,
            line_total=round(flower.price * quantity, 2),
        ))

    for item in line_items:
        flower = flowers[item.flower_id]
        flower.stock -= item.quantity
        await store.set_flower_stock(flower.id, flower.stock)

    order = Order(
        id=create_id(12),
        customer=payload.customer,
        payment_method=payload.payment_method,
        payment_status="pending",
        items=line_items,
        total=round(sum(item.line_total for item in line_items), 2),
        created_at=utcnow(),
    )
    await store.insert_order(order.model_dump())
    logger.info("order.placed", order_id=order.id, lines=len(line_items), total=order.total, payment_method=order.payment_method)
    return order


async def update_payment_status(store: CatalogStore, order_id: Optional[str], payload: OrderStatusUpdate) -> Order:
    order_id = require_id(order_id)
    doc = await store.update_order(order_id, {"payment_status": payload.payment_status})
    if doc is None:
        raise NotFound("order not found")
    logger.info("order.payment_status", order_id=order_id, payment_status=payload.payment_status)
    return Order(**doc)
