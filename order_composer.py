"""
Order messages sent to each store over WhatsApp.

A cart spanning several stores yields one independent message and link per
store; nothing ties them together.
"""
import re
from typing import List, Optional
from urllib.parse import quote

from cart import CartStore
from schemas import CartItem, StoreOrder

WHATSAPP_BASE_URL = "https://wa.me/55"
GREETING = "Olá! Vi esses produtos no ACHA AI e quero comprar:"

# Characters encodeURIComponent leaves untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"


def money(value: float) -> str:
    return f"R$ {value:.2f}"


def digits_only(contact: str) -> str:
    return re.sub(r"\D", "", contact or "")


def store_total(items: List[CartItem]) -> float:
    return sum(item.price * item.quantity for item in items)


def compose_order_message(items: List[CartItem]) -> str:
    message = f"{GREETING}\n\n"
    for item in items:
        message += f"📦 {item.name}\n"
        message += f"   Quantidade: {item.quantity}\n"
        message += f"   Preço: {money(item.price)}\n"
        message += f"   Subtotal: {money(item.price * item.quantity)}\n\n"
    message += f"💰 Total: {money(store_total(items))}"
    return message


def whatsapp_link(contact: str, message: Optional[str] = None) -> str:
    url = f"{WHATSAPP_BASE_URL}{digits_only(contact)}"
    if message is None:
        return url
    return f"{url}?text={quote(message, safe=_URI_COMPONENT_SAFE)}"


def compose_store_order(store_name: str, items: List[CartItem]) -> StoreOrder:
    whatsapp = items[0].store.whatsapp
    message = compose_order_message(items)
    return StoreOrder(
        store_name=store_name,
        whatsapp=whatsapp,
        total=round(store_total(items), 2),
        message=message,
        url=whatsapp_link(whatsapp, message),
    )


def compose_checkout(cart: CartStore) -> List[StoreOrder]:
    return [compose_store_order(name, items) for name, items in cart.group_by_store().items()]
