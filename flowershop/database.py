from __future__ import annotations
import copy
from abc import ABC, abstractmethod
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from flowershop.config import get_settings

DEFAULT_HERO_IMAGE = "https://images.unsplash.com/photo-1490750967868-88aa4486c946?auto=format&fit=crop&w=1200&q=80"

SEED_FLOWERS: list[dict[str, Any]] = [
    {"id": "rose-red", "name": "Crimson Rose Bouquet", "description": "Hand-tied red roses for romantic occasions.", "price": 34.99, "occasion": "romance", "image": "https://images.unsplash.com/photo-1518895949257-7621c3c786d7?auto=format&fit=crop&w=1000&q=80", "image_focus_x": 50, "image_focus_y": 46, "stock": 15, "created_at": datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)},
    {"id": "sunshine-tulip", "name": "Sunshine Tulip Mix", "description": "Bright yellow and orange tulips for cheerful gifting.", "price": 24.5, "occasion": "birthday", "image": "https://images.unsplash.com/photo-1494976388531-d1058494cdd8?auto=format&fit=crop&w=1000&q=80", "image_focus_x": 50, "image_focus_y": 46, "stock": 20, "created_at": datetime(2026, 1, 9, 12, 30, tzinfo=timezone.utc)},
    {"id": "pure-lily", "name": "Pure White Lily Vase", "description": "Elegant lilies arranged in a clear glass vase.", "price": 41.0, "occasion": "wedding", "image": "https://images.unsplash.com/photo-1468327768560-75b778cbb551?auto=format&fit=crop&w=1000&q=80", "image_focus_x": 50, "image_focus_y": 46, "stock": 8, "created_at": datetime(2026, 1, 12, 8, 45, tzinfo=timezone.utc)},
    {"id": "pastel-peony", "name": "Pastel Peony Bundle", "description": "Soft peonies with seasonal fillers.", "price": 29.75, "occasion": "thank-you", "image": "https://images.unsplash.com/photo-1520763185298-1b434c919102?auto=format&fit=crop&w=1000&q=80", "image_focus_x": 50, "image_focus_y": 46, "stock": 12, "created_at": datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)},
]


def create_id(size: int = 12) -> str:
    return uuid.uuid4().hex[:size]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _newest_first(docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(docs, key=lambda d: d["created_at"], reverse=True)


class CatalogStore(ABC):
    """Storage for flowers, orders, users, notifications and site settings.

    Records go in and come out as plain dicts keyed by ``id``. Callers never
    receive references into the store's own state.
    """

    kind = "base"

    @abstractmethod
    async def list_flowers(self) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def insert_flower(self, doc: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def update_flower(self, flower_id: str, updates: dict[str, Any]) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    async def delete_flower(self, flower_id: str) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    async def set_flower_stock(self, flower_id: str, stock: int) -> None:
        ...

    @abstractmethod
    async def list_orders(self) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def insert_order(self, doc: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def update_order(self, order_id: str, updates: dict[str, Any]) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    async def insert_user(self, doc: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def get_site_settings(self) -> dict[str, Any]:
        ...

    @abstractmethod
    async def save_site_settings(self, doc: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def list_notifications(self, limit: int) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def insert_notification(self, doc: dict[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    async def delete_notification(self, notification_id: str) -> Optional[dict[str, Any]]:
        ...


class MemoryStore(CatalogStore):
    """Process-local store, seeded with the starter catalog."""

    kind = "memory"

    def __init__(self, flowers: Optional[list[dict[str, Any]]] = None):
        self.flowers: list[dict[str, Any]] = copy.deepcopy(SEED_FLOWERS if flowers is None else flowers)
        self.orders: list[dict[str, Any]] = []
        self.users: list[dict[str, Any]] = []
        self.notifications: list[dict[str, Any]] = []
        self.settings: dict[str, Any] = {"hero_image": DEFAULT_HERO_IMAGE, "updated_at": utcnow()}

    @staticmethod
    def _find(docs: list[dict[str, Any]], doc_id: str) -> Optional[int]:
        for index, doc in enumerate(docs):
            if doc["id"] == doc_id:
                return index
        return None

    async def list_flowers(self):
        return copy.deepcopy(_newest_first(self.flowers))

    async def insert_flower(self, doc):
        self.flowers.append(copy.deepcopy(doc))
        return copy.deepcopy(doc)

    async def update_flower(self, flower_id, updates):
        index = self._find(self.flowers, flower_id)
        if index is None:
            return None
        self.flowers[index] = {**self.flowers[index], **copy.deepcopy(updates)}
        return copy.deepcopy(self.flowers[index])

    async def delete_flower(self, flower_id):
        index = self._find(self.flowers, flower_id)
        if index is None:
            return None
        return self.flowers.pop(index)

    async def set_flower_stock(self, flower_id, stock):
        index = self._find(self.flowers, flower_id)
        if index is not None:
            self.flowers[index]["stock"] = stock

    async def list_orders(self):
        return copy.deepcopy(_newest_first(self.orders))

    async def insert_order(self, doc):
        self.orders.append(copy.deepcopy(doc))
        return copy.deepcopy(doc)

    async def update_order(self, order_id, updates):
        index = self._find(self.orders, order_id)
        if index is None:
            return None
        self.orders[index] = {**self.orders[index], **copy.deepcopy(updates)}
        return copy.deepcopy(self.orders[index])

    async def find_user_by_email(self, email):
        for user in self.users:
            if user["email"] == email:
                return copy.deepcopy(user)
        return None

    async def insert_user(self, doc):
        self.users.append(copy.deepcopy(doc))
        return copy.deepcopy(doc)

    async def get_site_settings(self):
        return dict(self.settings)

    async def save_site_settings(self, doc):
        self.settings = dict(doc)
        return dict(self.settings)

    async def list_notifications(self, limit):
        return copy.deepcopy(_newest_first(self.notifications)[:limit])

    async def insert_notification(self, doc):
        self.notifications.append(copy.deepcopy(doc))
        return copy.deepcopy(doc)

    async def delete_notification(self, notification_id):
        index = self._find(self.notifications, notification_id)
        if index is None:
            return None
        return self.notifications.pop(index)


def _to_record(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if doc and "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def _to_document(record: dict[str, Any]) -> dict[str, Any]:
    doc = {k: v for k, v in record.items() if k != "id"}
    doc["_id"] = record["id"]
    return doc


class MongoStore(CatalogStore):
    """MongoDB-backed store. Each record class lives in its own collection."""

    kind = "mongodb"

    def __init__(self, url: str, name: str, client: Optional[AsyncIOMotorClient] = None):
        self.url = url
        self.name = name
        self._client = client
        self._db: Optional[AsyncIOMotorDatabase] = None
        self._seeded = False

    def get_db(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            if self._client is None:
                self._client = AsyncIOMotorClient(self.url, tz_aware=True)
            self._db = self._client[self.name]
        return self._db

    async def ensure_seed_flowers(self) -> None:
        if self._seeded:
            return
        db = self.get_db()
        if await db["flowers"].count_documents({}, limit=1) == 0:
            await db["flowers"].insert_many([_to_document(f) for f in SEED_FLOWERS])
        self._seeded = True

    async def _find_all(self, collection: str, limit: int = 0) -> list[dict[str, Any]]:
        db = self.get_db()
        cursor = db[collection].find({}).sort("created_at", -1).limit(limit)
        return [_to_record(d) async for d in cursor]

    async def _insert(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        db = self.get_db()
        await db[collection].insert_one(_to_document(record))
        return dict(record)

    async def _update(self, collection: str, doc_id: str, updates: dict[str, Any]) -> Optional[dict[str, Any]]:
        db = self.get_db()
        doc = await db[collection].find_one_and_update(
            {"_id": doc_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        return _to_record(doc)

    async def _delete(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        db = self.get_db()
        return _to_record(await db[collection].find_one_and_delete({"_id": doc_id}))

    async def list_flowers(self):
        await self.ensure_seed_flowers()
        return await self._find_all("flowers")

    async def insert_flower(self, doc):
        return await self._insert("flowers", doc)

    async def update_flower(self, flower_id, updates):
        return await self._update("flowers", flower_id, updates)

    async def delete_flower(self, flower_id):
        return await self._delete("flowers", flower_id)

    async def set_flower_stock(self, flower_id, stock):
        db = self.get_db()
        await db["flowers"].update_one({"_id": flower_id}, {"$set": {"stock": stock}})

    async def list_orders(self):
        return await self._find_all("orders")

    async def insert_order(self, doc):
        return await self._insert("orders", doc)

    async def update_order(self, order_id, updates):
        return await self._update("orders", order_id, updates)

    async def find_user_by_email(self, email):
        db = self.get_db()
        return _to_record(await db["users"].find_one({"email": email}))

    async def insert_user(self, doc):
        return await self._insert("users", doc)

    async def get_site_settings(self):
        db = self.get_db()
        doc = await db["site_settings"].find_one({"_id": "main"}, {"_id": 0})
        if doc is None:
            doc = {"hero_image": DEFAULT_HERO_IMAGE, "updated_at": utcnow()}
            await db["site_settings"].insert_one({"_id": "main", **doc})
        return doc

    async def save_site_settings(self, doc):
        db = self.get_db()
        await db["site_settings"].update_one({"_id": "main"}, {"$set": doc}, upsert=True)
        return dict(doc)

    async def list_notifications(self, limit):
        return await self._find_all("notifications", limit=limit)

    async def insert_notification(self, doc):
        return await self._insert("notifications", doc)

    async def delete_notification(self, notification_id):
        return await self._delete("notifications", notification_id)


@lru_cache
def get_store() -> CatalogStore:
    settings = get_settings()
    if settings.DATABASE_URL:
        return MongoStore(settings.DATABASE_URL, settings.DATABASE_NAME)
    return MemoryStore()
