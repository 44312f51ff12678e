from __future__ import annotations
import math
from typing import Optional, Union
import structlog

from flowershop.catalog import require_id
from flowershop.database import CatalogStore, create_id, utcnow
from flowershop.errors import NotFound
from flowershop.schemas import Notification, NotificationCreate, SiteSettings, SiteSettingsUpdate

logger = structlog.get_logger(__name__)

DEFAULT_NOTIFICATION_LIMIT = 20
MAX_NOTIFICATION_LIMIT = 100


async def get_site_settings(store: CatalogStore) -> SiteSettings:
    return SiteSettings(**await store.get_site_settings())


async def update_site_settings(store: CatalogStore, payload: SiteSettingsUpdate) -> SiteSettings:
    settings = SiteSettings(hero_image=payload.hero_image, updated_at=utcnow())
    await store.save_site_settings(settings.model_dump())
    logger.info("settings.updated", hero_image=settings.hero_image)
    return settings


def clamp_limit(limit: Union[str, int, float, None]) -> int:
    """Floor and clamp a raw limit to 1..100; anything non-numeric means the default."""
    try:
        value = float(limit)
    except (TypeError, ValueError):
        return DEFAULT_NOTIFICATION_LIMIT
    if not math.isfinite(value):
        return DEFAULT_NOTIFICATION_LIMIT
    return max(1, min(MAX_NOTIFICATION_LIMIT, math.floor(value)))


async def list_notifications(store: CatalogStore, limit: Union[str, int, None] = None) -> list[Notification]:
    return [Notification(**doc) for doc in await store.list_notifications(clamp_limit(limit))]


async def create_notification(store: CatalogStore, payload: NotificationCreate) -> Notification:
    notification = Notification(id=create_id(12), title=payload.title, message=payload.message, created_at=utcnow())
    await store.insert_notification(notification.model_dump())
    return notification


async def delete_notification(store: CatalogStore, notification_id: Optional[str]) -> Notification:
    notification_id = require_id(notification_id)
    doc = await store.delete_notification(notification_id)
    if doc is None:
        raise NotFound("notification not found")
    return Notification(**doc)
