from __future__ import annotations
import re
from typing import Optional
import structlog
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from flowershop.config import Settings
from flowershop.schemas import ChatReply, ChatRequest, ChatTurn, Flower
from flowershop.database import utcnow

logger = structlog.get_logger(__name__)

WHATSAPP_CHAT_URL = "https://wa.me/212775094615"
LLM_TIMEOUT_SECONDS = 12
LLM_MAX_OUTPUT_TOKENS = 220

GREETING_RE = re.compile(r"\b(hello|hi|hey|good morning|good evening)\b", re.I)
DELIVERY_RE = re.compile(r"\b(delivery|ship|shipping|same day|arrive)", re.I)
PAYMENT_RE = re.compile(r"\b(payment|paypal|cash|card|pay)", re.I)
PRICE_RE = re.compile(r"\b(price|pricing|cost|cheap|budget|afford)", re.I)
CONTACT_RE = re.compile(r"\b(contact|phone|whatsapp|support|agent|human)", re.I)
OCCASION_RULES = [
    ("romance", re.compile(r"\b(romance|romantic|love|anniversary|valentine)", re.I)),
    ("birthday", re.compile(r"\b(birthday|bday)", re.I)),
    ("wedding", re.compile(r"\b(wedding|bridal|bride)", re.I)),
    ("thank-you", re.compile(r"\b(thank|gratitude|appreciation)", re.I)),
    ("general", re.compile(r"\b(general|any occasion|everyday)", re.I)),
]

SYSTEM_PROMPT_TEMPLATE = (
    "You are Zaami Flower's shop assistant. "
    "Keep responses concise and practical (under 90 words when possible). "
    "Only answer topics related to the shop: bouquets, pricing, delivery, payment, and ordering. "
    "Current flower catalog snapshot: {catalog}"
)


def in_stock(flowers: list[Flower]) -> list[Flower]:
    return [f for f in flowers if f.stock > 0]


def _label(flower: Flower) -> str:
    return f"{flower.name} (${flower.price:.2f})"


def format_catalog(flowers: list[Flower], limit: int = 4) -> str:
    available = in_stock(flowers)[:limit]
    if not available:
        return "No flowers currently in stock."
    return "; ".join(f"{f.name} (${f.price:.2f}, {f.occasion}, stock {f.stock})" for f in available)


def build_local_reply(message: str, flowers: list[Flower]) -> str:
    available = in_stock(flowers)

    if GREETING_RE.search(message):
        return "Hi! I can help with bouquets, prices, delivery, and checkout. What are you shopping for today?"

    if DELIVERY_RE.search(message):
        return ("We provide same-day delivery based on availability and schedule. "
                "Share your area and preferred time and we can guide the best option.")

    if PAYMENT_RE.search(message):
        return ("You can checkout with Cash on Delivery or PayPal. "
                "Orders are created as Pending, then payment status can be updated by admin.")

    if PRICE_RE.search(message):
        if available:
            cheapest = min(available, key=lambda f: f.price)
            return (f"Our current budget-friendly option is {cheapest.name} at ${cheapest.price:.2f}. "
                    "I can also suggest options by occasion or price range.")
        return "I can help with pricing, but I do not see in-stock items right now."

    for occasion, pattern in OCCASION_RULES:
        if pattern.search(message):
            matching = [f for f in available if f.occasion == occasion][:3]
            if matching:
                return f"Great choice. For {occasion} I recommend {', '.join(_label(f) for f in matching)}."
            return f"We currently have limited stock for {occasion} bouquets. I can suggest alternatives from other categories."

    if CONTACT_RE.search(message):
        return f"You can reach our team on WhatsApp for direct help: {WHATSAPP_CHAT_URL}"

    if available:
        picks = ", ".join(_label(f) for f in available[:3])
        return f"Top picks right now: {picks}. Tell me your occasion and budget for a sharper recommendation."

    return "I can help with bouquets, delivery, pricing, and checkout. Ask me anything about your order."


def build_messages(message: str, history: list[ChatTurn], flowers: list[Flower]) -> list[BaseMessage]:
    messages: list[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT_TEMPLATE.format(catalog=format_catalog(flowers, 6)))]
    for turn in history:
        messages.append(AIMessage(content=turn.content) if turn.role == "assistant" else HumanMessage(content=turn.content))
    messages.append(HumanMessage(content=message))
    return messages


def build_chat_model(settings: Settings) -> ChatOpenAI:
    return ChatOpenAI(
        model=settings.OPENAI_MODEL,
        api_key=settings.OPENAI_API_KEY,
        timeout=LLM_TIMEOUT_SECONDS,
        max_retries=0,
        max_tokens=LLM_MAX_OUTPUT_TOKENS,
    )


async def request_llm_reply(settings: Settings, message: str, history: list[ChatTurn], flowers: list[Flower]) -> Optional[str]:
    """Ask the configured model; None when no API key is set."""
    if not (settings.OPENAI_API_KEY or "").strip():
        return None

    result = await build_chat_model(settings).ainvoke(build_messages(message, history, flowers))
    content = result.content
    if isinstance(content, list):
        content = "\n".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in content)
    reply = (content or "").strip()
    if not reply:
        raise ValueError("empty model response")
    return reply


async def generate_reply(settings: Settings, payload: ChatRequest, flowers: list[Flower]) -> ChatReply:
    try:
        reply = await request_llm_reply(settings, payload.message, payload.history, flowers)
        if reply:
            return ChatReply(reply=reply, source="openai", timestamp=utcnow())
    except Exception as exc:
        logger.warning("chat.llm_fallback", error=str(exc))

    return ChatReply(reply=build_local_reply(payload.message, flowers), source="local", timestamp=utcnow())
