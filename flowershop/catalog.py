from __future__ import annotations
from typing import Optional
import structlog

from flowershop.database import CatalogStore, create_id, utcnow
from flowershop.errors import BadRequest, NotFound
from flowershop.schemas import Flower, FlowerCreate, FlowerPatch

logger = structlog.get_logger(__name__)


def require_id(value: Optional[str]) -> str:
    value = (value or "").strip()
    if not value:
        raise BadRequest("id query param is required")
    return value


def filter_flowers(flowers: list[Flower], search: str = "", occasion: str = "all", max_price: Optional[float] = None) -> list[Flower]:
    search = search.strip().lower()
    occasion = (occasion or "all").strip().lower()
    matches = []
    for flower in flowers:
        if search and search not in flower.name.lower() and search not in flower.description.lower():
            continue
        if occasion != "all" and flower.occasion.lower() != occasion:
            continue
        if max_price is not None and flower.price > max_price:
            continue
        matches.append(flower)
    return sorted(matches, key=lambda f: f.created_at, reverse=True)


async def list_flowers(store: CatalogStore, search: str = "", occasion: str = "all", max_price: Optional[float] = None) -> list[Flower]:
    flowers = [Flower(**doc) for doc in await store.list_flowers()]
    return filter_flowers(flowers, search, occasion, max_price)


async def create_flower(store: CatalogStore, payload: FlowerCreate) -> Flower:
    flower = Flower(id=create_id(10), created_at=utcnow(), **payload.model_dump())
    await store.insert_flower(flower.model_dump())
    logger.info("flower.created", flower_id=flower.id, name=flower.name, stock=flower.stock)
    return flower


async def update_flower(store: CatalogStore, flower_id: Optional[str], payload: FlowerPatch) -> Flower:
    flower_id = require_id(flower_id)
    updates = payload.updates()
    doc = await store.update_flower(flower_id, updates)
    if doc is None:
        raise NotFound("flower not found")
    logger.info("flower.updated", flower_id=flower_id, fields=sorted(updates))
    return Flower(**doc)


async def delete_flower(store: CatalogStore, flower_id: Optional[str]) -> Flower:
    flower_id = require_id(flower_id)
    doc = await store.delete_flower(flower_id)
    if doc is None:
        raise NotFound("flower not found")
    logger.info("flower.deleted", flower_id=flower_id)
    return Flower(**doc)
