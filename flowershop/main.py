from __future__ import annotations
from typing import Optional
import structlog
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flowershop import auth, catalog, chat, orders, storefront
from flowershop.config import Settings, get_settings
from flowershop.database import CatalogStore, get_store, utcnow
from flowershop.errors import ShopError
from flowershop.log import configure_logging
from flowershop.schemas import (
    ChatReply,
    ChatRequest,
    Flower,
    FlowerCreate,
    FlowerPatch,
    LoginRequest,
    Notification,
    NotificationCreate,
    Order,
    OrderCreate,
    OrderStatusUpdate,
    PublicUser,
    SignupRequest,
    SiteSettings,
    SiteSettingsUpdate,
)

_settings = get_settings()
configure_logging(_settings.LOG_LEVEL, json_output=_settings.is_production)
logger = structlog.get_logger(__name__)

app = FastAPI(title="Zaami Flower Shop API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

admin_only = auth.require_role("admin")
shopper = auth.require_role("admin", "customer")


# Errors

def describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid request"
    first = errors[0]
    message = str(first["msg"])
    # ValueErrors raised by the schemas already name their field
    if message.startswith("Value error, "):
        return message.removeprefix("Value error, ")
    loc = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    return f"{loc}: {message}" if loc else message


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": describe_validation_error(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("request.failed", method=request.method, path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc) or "internal server error"})


def auth_failure(status_code: int, message: str) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content={"detail": message})
    auth.clear_session_cookie(response)
    return response


# Service

@app.get("/")
async def root():
    return {"message": "Zaami Flower Shop API running"}


@app.get("/health")
async def health(store: CatalogStore = Depends(get_store)):
    return {
        "status": "ok",
        "service": "flower-shop-api",
        "database": store.kind,
        "timestamp": utcnow().isoformat(),
    }


# Flowers

@app.get("/flowers", response_model=list[Flower])
async def list_flowers(
    search: str = Query(""),
    occasion: str = Query("all"),
    max_price: Optional[float] = Query(None),
    store: CatalogStore = Depends(get_store),
):
    return await catalog.list_flowers(store, search, occasion, max_price)


@app.post("/flowers", response_model=Flower, status_code=201)
async def create_flower(payload: FlowerCreate, user: PublicUser = Depends(admin_only), store: CatalogStore = Depends(get_store)):
    return await catalog.create_flower(store, payload)


@app.patch("/flowers", response_model=Flower)
async def update_flower(
    payload: FlowerPatch,
    record_id: Optional[str] = Query(None, alias="id"),
    user: PublicUser = Depends(admin_only),
    store: CatalogStore = Depends(get_store),
):
    return await catalog.update_flower(store, record_id, payload)


@app.delete("/flowers")
async def delete_flower(record_id: Optional[str] = Query(None, alias="id"), user: PublicUser = Depends(admin_only), store: CatalogStore = Depends(get_store)):
    removed = await catalog.delete_flower(store, record_id)
    return {"ok": True, "removed": removed}


# Orders

@app.get("/orders", response_model=list[Order])
async def list_orders(user: PublicUser = Depends(admin_only), store: CatalogStore = Depends(get_store)):
    return await orders.list_orders(store)


@app.post("/orders", response_model=Order, status_code=201)
async def create_order(payload: OrderCreate, user: PublicUser = Depends(shopper), store: CatalogStore = Depends(get_store)):
    return await orders.place_order(store, payload)


@app.patch("/orders", response_model=Order)
async def update_order_status(
    payload: OrderStatusUpdate,
    record_id: Optional[str] = Query(None, alias="id"),
    user: PublicUser = Depends(admin_only),
    store: CatalogStore = Depends(get_store),
):
    return await orders.update_payment_status(store, record_id, payload)


# Storefront

@app.get("/settings", response_model=SiteSettings)
async def get_site_settings(store: CatalogStore = Depends(get_store)):
    return await storefront.get_site_settings(store)


@app.patch("/settings", response_model=SiteSettings)
async def update_site_settings(payload: SiteSettingsUpdate, user: PublicUser = Depends(admin_only), store: CatalogStore = Depends(get_store)):
    return await storefront.update_site_settings(store, payload)


@app.get("/notifications", response_model=list[Notification])
async def list_notifications(limit: Optional[str] = Query(None), store: CatalogStore = Depends(get_store)):
    return await storefront.list_notifications(store, limit)


@app.post("/notifications", response_model=Notification, status_code=201)
async def create_notification(payload: NotificationCreate, user: PublicUser = Depends(admin_only), store: CatalogStore = Depends(get_store)):
    return await storefront.create_notification(store, payload)


@app.delete("/notifications")
async def delete_notification(record_id: Optional[str] = Query(None, alias="id"), user: PublicUser = Depends(admin_only), store: CatalogStore = Depends(get_store)):
    removed = await storefront.delete_notification(store, record_id)
    return {"ok": True, "removed": removed}


# Chat

@app.post("/chat", response_model=ChatReply)
async def chat_reply(payload: ChatRequest, settings: Settings = Depends(get_settings), store: CatalogStore = Depends(get_store)):
    flowers = [Flower(**doc) for doc in await store.list_flowers()]
    return await chat.generate_reply(settings, payload, flowers)


# Auth

@app.post("/auth/login")
async def login(
    payload: LoginRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    store: CatalogStore = Depends(get_store),
):
    if not auth.is_auth_configured(settings):
        return auth_failure(503, "authentication is not configured. Set AUTH_SECRET, ADMIN_EMAIL and ADMIN_PASSWORD.")

    user = await auth.authenticate(store, settings, payload.email, payload.password)
    if user is None:
        logger.info("auth.login_failed", email=auth.normalize_email(payload.email))
        return auth_failure(401, "invalid email or password")

    auth.set_session_cookie(response, user, settings)
    return {"user": user}


@app.post("/auth/signup", status_code=201)
async def signup(
    payload: SignupRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    store: CatalogStore = Depends(get_store),
):
    if not auth.is_auth_configured(settings):
        return auth_failure(503, "authentication is not configured. Set AUTH_SECRET, ADMIN_EMAIL and ADMIN_PASSWORD.")

    user = await auth.register_customer(store, settings, payload)
    auth.set_session_cookie(response, user, settings)
    return {"user": user}


@app.post("/auth/logout")
async def logout(response: Response):
    auth.clear_session_cookie(response)
    return {"ok": True}


@app.get("/auth/me")
async def me(request: Request, settings: Settings = Depends(get_settings)):
    user = auth.get_session_user(request, settings)
    if user is None:
        return {"authenticated": False, "user": None}
    return {"authenticated": True, "user": user}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=_settings.PORT)
