from __future__ import annotations
import secrets
from datetime import datetime, timedelta
from typing import Optional
import bcrypt
import jwt
import structlog
from fastapi import Depends, Request, Response

from flowershop.config import DEFAULT_AUTH_SECRET, Settings, get_settings
from flowershop.database import CatalogStore, create_id, utcnow
from flowershop.errors import Conflict, Forbidden, ServiceUnavailable, Unauthorized
from flowershop.schemas import PublicUser, SignupRequest, User

logger = structlog.get_logger(__name__)

SESSION_COOKIE = "zaami_session"
SESSION_TTL_SECONDS = 60 * 60 * 24
TOKEN_ALGORITHM = "HS256"

# Used only outside production when the matching env vars are unset
DEV_ACCOUNTS = {
    "admin": ("admin@zaamiflower.com", "Admin1234!"),
    "customer": ("customer@zaamiflower.com", "Customer1234!"),
}


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def safe_equal(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("ascii")


def verify_password(stored: str, candidate: str) -> bool:
    """Check a candidate against a bcrypt hash, or a plain configured password."""
    if stored.startswith("$2"):
        try:
            return bcrypt.checkpw(candidate.encode("utf-8"), stored.encode("ascii"))
        except ValueError:
            return False
    return safe_equal(stored, candidate)


def has_valid_secret(settings: Settings) -> bool:
    if not settings.is_production:
        return True
    secret = settings.AUTH_SECRET or ""
    return len(secret) >= 24 and secret != DEFAULT_AUTH_SECRET


def configured_users(settings: Settings) -> list[User]:
    dev = not settings.is_production
    admin_email = settings.ADMIN_EMAIL or (DEV_ACCOUNTS["admin"][0] if dev else "")
    admin_password = settings.ADMIN_PASSWORD or (DEV_ACCOUNTS["admin"][1] if dev else "")
    customer_email = settings.CUSTOMER_EMAIL or (DEV_ACCOUNTS["customer"][0] if dev else "")
    customer_password = settings.CUSTOMER_PASSWORD or (DEV_ACCOUNTS["customer"][1] if dev else "")

    if not admin_email or not admin_password:
        return []

    users = [User(id="admin-1", name="Admin", email=normalize_email(admin_email), password_hash=admin_password, role="admin")]
    if customer_email and customer_password:
        users.append(User(id="customer-1", name="Customer", email=normalize_email(customer_email), password_hash=customer_password, role="customer"))
    return users


def is_auth_configured(settings: Settings) -> bool:
    return bool(configured_users(settings)) and has_valid_secret(settings)


def to_public(user: User) -> PublicUser:
    return PublicUser(id=user.id, name=user.name, email=user.email, role=user.role)


# Tokens

def issue_token(user: PublicUser, settings: Settings, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    payload = {
        "sub": user.id,
        "email": user.email,
        "role": user.role,
        "exp": int((now + timedelta(seconds=SESSION_TTL_SECONDS)).timestamp()),
    }
    return jwt.encode(payload, settings.AUTH_SECRET, algorithm=TOKEN_ALGORITHM)


def decode_token(token: Optional[str], settings: Settings) -> Optional[PublicUser]:
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.AUTH_SECRET, algorithms=[TOKEN_ALGORITHM], options={"require": ["exp", "sub"]})
    except jwt.PyJWTError:
        return None
    if payload.get("role") not in ("admin", "customer"):
        return None
    return PublicUser(id=str(payload["sub"]), email=str(payload.get("email") or ""), role=payload["role"])


def set_session_cookie(response: Response, user: PublicUser, settings: Settings) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        issue_token(user, settings),
        max_age=SESSION_TTL_SECONDS,
        path="/",
        secure=settings.is_production,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="lax")


def get_session_user(request: Request, settings: Settings) -> Optional[PublicUser]:
    return decode_token(request.cookies.get(SESSION_COOKIE), settings)


# Accounts

async def authenticate(store: CatalogStore, settings: Settings, email: str, password: str) -> Optional[PublicUser]:
    email = normalize_email(email)

    for user in configured_users(settings):
        if safe_equal(user.email, email) and verify_password(user.password_hash, password):
            return to_public(user)

    doc = await store.find_user_by_email(email)
    if doc is None:
        return None
    user = User(**doc)
    if not verify_password(user.password_hash, password):
        return None
    return to_public(user)


async def register_customer(store: CatalogStore, settings: Settings, payload: SignupRequest) -> PublicUser:
    email = str(payload.email)
    if any(safe_equal(user.email, email) for user in configured_users(settings)):
        raise Conflict("email already exists")
    if await store.find_user_by_email(email) is not None:
        raise Conflict("email already exists")

    user = User(
        id=create_id(12),
        name=payload.name,
        email=email,
        password_hash=hash_password(payload.password),
        role="customer",
        created_at=utcnow(),
    )
    await store.insert_user(user.model_dump())
    logger.info("auth.signup", user_id=user.id)
    return to_public(user)


def require_role(*roles: str):
    """Dependency factory: the session user, if their role is in `roles`."""

    def dependency(request: Request, settings: Settings = Depends(get_settings)) -> PublicUser:
        if not is_auth_configured(settings):
            raise ServiceUnavailable("authentication is not configured")
        user = get_session_user(request, settings)
        if user is None:
            raise Unauthorized("authentication required")
        if user.role not in roles:
            raise Forbidden("insufficient permissions")
        return user

    return dependency
