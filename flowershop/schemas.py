from __future__ import annotations
import math
import re
from datetime import datetime
from typing import Literal, Optional
from urllib.parse import urlparse
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

# Each record class maps to one collection: flowers, orders, users, notifications, site_settings

OCCASIONS = ("general", "romance", "birthday", "wedding", "thank-you")
PAYMENT_METHODS = ("cash", "paypal")
PAYMENT_STATUSES = ("pending", "paid", "failed")
MAX_STOCK = 10000
MAX_LINE_QUANTITY = 100
PHONE_RE = re.compile(r"^[0-9+\-\s()]{7,24}$")

Occasion = Literal["general", "romance", "birthday", "wedding", "thank-you"]
PaymentMethod = Literal["cash", "paypal"]
PaymentStatus = Literal["pending", "paid", "failed"]
Role = Literal["admin", "customer"]


def is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_choice(value, allowed) -> Optional[str]:
    normalized = str(value or "").strip().lower()
    return normalized if normalized in allowed else None


def is_valid_phone(value: str) -> bool:
    if not PHONE_RE.match(value):
        return False
    digits = sum(ch.isdigit() for ch in value)
    return 7 <= digits <= 15


# Flowers

class Flower(BaseModel):
    id: str
    name: str
    description: str = ""
    price: float
    occasion: str = "general"
    image: str = ""
    image_focus_x: float = 50
    image_focus_y: float = 50
    stock: int = 0
    created_at: datetime


class FlowerFields(BaseModel):
    """Per-field rules shared by flower create and patch payloads."""

    @field_validator("name", check_fields=False)
    @classmethod
    def _name(cls, v):
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("name must be at least 2 characters")
        return v

    @field_validator("description", check_fields=False)
    @classmethod
    def _description(cls, v):
        return (v or "").strip()

    @field_validator("price", check_fields=False)
    @classmethod
    def _price(cls, v):
        if v is None or not math.isfinite(v) or v <= 0:
            raise ValueError("price must be greater than 0")
        return round(v, 2)

    @field_validator("occasion", check_fields=False)
    @classmethod
    def _occasion(cls, v):
        occasion = normalize_choice(v, OCCASIONS)
        if occasion is None:
            raise ValueError("occasion is invalid")
        return occasion

    @field_validator("image", check_fields=False)
    @classmethod
    def _image(cls, v):
        v = (v or "").strip()
        if v and not is_http_url(v):
            raise ValueError("image must be a valid http/https URL")
        return v

    @field_validator("image_focus_x", "image_focus_y", check_fields=False)
    @classmethod
    def _focus(cls, v, info):
        if v is None or not math.isfinite(v) or v < 0 or v > 100:
            raise ValueError(f"{info.field_name} must be between 0 and 100")
        return round(v, 2)

    @field_validator("stock", check_fields=False)
    @classmethod
    def _stock(cls, v):
        if v is None or v < 0 or v > MAX_STOCK:
            raise ValueError(f"stock must be an integer between 0 and {MAX_STOCK}")
        return v


class FlowerCreate(FlowerFields):
    name: str
    description: str = ""
    price: float
    occasion: str = "general"
    image: str = ""
    image_focus_x: float = 50
    image_focus_y: float = 50
    stock: int = 0


class FlowerPatch(FlowerFields):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    occasion: Optional[str] = None
    image: Optional[str] = None
    image_focus_x: Optional[float] = None
    image_focus_y: Optional[float] = None
    stock: Optional[int] = None

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set:
            raise ValueError("at least one flower field is required")
        return self

    def updates(self) -> dict:
        return self.model_dump(exclude_unset=True)


# Orders

class Customer(BaseModel):
    name: str
    email: EmailStr
    phone: str
    address: str

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        v = v.strip()
        if len(v) < 2 or len(v) > 120:
            raise ValueError("customer.name must be between 2 and 120 characters")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v):
        return str(v or "").strip().lower()

    @field_validator("phone")
    @classmethod
    def _phone(cls, v):
        v = v.strip()
        if not is_valid_phone(v):
            raise ValueError("customer.phone is invalid")
        return v

    @field_validator("address")
    @classmethod
    def _address(cls, v):
        v = v.strip()
        if len(v) < 6 or len(v) > 240:
            raise ValueError("customer.address must be between 6 and 240 characters")
        return v


class CartItem(BaseModel):
    flower_id: str
    quantity: int

    @field_validator("flower_id")
    @classmethod
    def _flower_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("invalid cart item payload")
        return v

    @field_validator("quantity")
    @classmethod
    def _quantity(cls, v):
        if v <= 0 or v > MAX_LINE_QUANTITY:
            raise ValueError("invalid cart item payload")
        return v


class OrderCreate(BaseModel):
    customer: Customer
    payment_method: str = "cash"
    items: list[CartItem]

    @field_validator("payment_method", mode="before")
    @classmethod
    def _payment_method(cls, v):
        method = normalize_choice(v if v is not None else "cash", PAYMENT_METHODS)
        if method is None:
            raise ValueError("payment_method must be cash or paypal")
        return method

    @field_validator("items")
    @classmethod
    def _items(cls, v):
        if not v:
            raise ValueError("at least one cart item is required")
        return v

    def merged_items(self) -> list[tuple[str, int]]:
        """Cart lines with repeated flower ids summed, in first-seen order."""
        quantities: dict[str, int] = {}
        for item in self.items:
            quantities[item.flower_id] = quantities.get(item.flower_id, 0) + item.quantity
        return list(quantities.items())


class LineItem(BaseModel):
    flower_id: str
    name: str
    unit_price: float
    quantity: int = Field(ge=1)
    line_total: float


class Order(BaseModel):
    id: str
    customer: Customer
    payment_method: PaymentMethod = "cash"
    payment_status: PaymentStatus = "pending"
    items: list[LineItem]
    total: float
    created_at: datetime


class OrderStatusUpdate(BaseModel):
    payment_status: str

    @field_validator("payment_status", mode="before")
    @classmethod
    def _payment_status(cls, v):
        status = normalize_choice(v, PAYMENT_STATUSES)
        if status is None:
            raise ValueError("payment_status must be pending, paid, or failed")
        return status


# Users & sessions

class User(BaseModel):
    id: str
    name: str = ""
    email: str
    password_hash: str
    role: Role = "customer"
    created_at: Optional[datetime] = None


class PublicUser(BaseModel):
    id: str
    name: str = ""
    email: str
    role: Role


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class SignupRequest(BaseModel):
    name: str
    email: EmailStr
    password: str

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("name must be at least 2 characters")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v):
        return str(v or "").strip().lower()

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        if len(v) < 8:
            raise ValueError("password must be at least 8 characters")
        # bcrypt only hashes the first 72 bytes
        if len(v.encode("utf-8")) > 72:
            raise ValueError("password must be at most 72 bytes")
        return v


# Storefront

class SiteSettings(BaseModel):
    hero_image: str
    updated_at: datetime


class SiteSettingsUpdate(BaseModel):
    hero_image: str

    @field_validator("hero_image")
    @classmethod
    def _hero_image(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("hero_image is required")
        if not is_http_url(v):
            raise ValueError("hero_image must be a valid http/https URL")
        return v


class Notification(BaseModel):
    id: str
    title: str
    message: str = ""
    created_at: datetime


class NotificationCreate(BaseModel):
    title: str
    message: str = ""

    @field_validator("title")
    @classmethod
    def _title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("title is required")
        if len(v) > 80:
            raise ValueError("title must be at most 80 characters")
        return v

    @field_validator("message")
    @classmethod
    def _message(cls, v):
        v = v.strip()
        if len(v) > 280:
            raise ValueError("message must be at most 280 characters")
        return v


# Chat

CHAT_MAX_MESSAGE_LENGTH = 500
CHAT_MAX_HISTORY_ITEMS = 10
CHAT_HISTORY_ENTRY_LENGTH = 500


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, v):
        return "assistant" if v == "assistant" else "user"

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, v):
        return str(v or "").strip()[:CHAT_HISTORY_ENTRY_LENGTH]


class ChatRequest(BaseModel):
    message: str = Field("", validate_default=True)
    history: list[ChatTurn] = []

    @field_validator("message", mode="before")
    @classmethod
    def _message(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("message is required")
        if len(v) > CHAT_MAX_MESSAGE_LENGTH:
            raise ValueError(f"message must be {CHAT_MAX_MESSAGE_LENGTH} characters or less")
        return v

    @field_validator("history", mode="before")
    @classmethod
    def _history_window(cls, v):
        if not isinstance(v, list):
            return []
        return [entry if isinstance(entry, dict) else {} for entry in v[-CHAT_MAX_HISTORY_ITEMS:]]

    @field_validator("history")
    @classmethod
    def _history_non_empty(cls, v):
        return [turn for turn in v if turn.content]


class ChatReply(BaseModel):
    reply: str
    source: Literal["openai", "local"]
    timestamp: datetime
