"""
Shopper cart: an ordered list of line items grouped by store at checkout.

Line items carry denormalized copies of the product and store fields taken
when the item is added; they are never re-synced with the catalog.
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from schemas import Cart, CartItem, CartStoreInfo, CartVariant, CatalogProduct, ProductVariant

logger = logging.getLogger(__name__)


class CartError(ValueError):
    pass


class VariantRequiredError(CartError):
    def __init__(self):
        super().__init__("Select a color and/or size before adding to the cart")


class OutOfStockError(CartError):
    def __init__(self):
        super().__init__("This variant is out of stock")


class CartItemNotFound(CartError):
    pass


def cart_item_key(product_id: str, variant_id: Optional[str] = None) -> str:
    return f"{product_id}-{variant_id}" if variant_id else product_id


class CartStore:
    def __init__(self, items: Optional[List[CartItem]] = None):
        self.items: List[CartItem] = list(items or [])

    def __len__(self):
        return len(self.items)

    def get(self, key: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.id == key), None)

    def _require(self, key: str) -> CartItem:
        item = self.get(key)
        if item is None:
            raise CartItemNotFound(f"Cart item {key} not found")
        return item

    def add_item(self, product: CatalogProduct, variant: Optional[ProductVariant] = None,
                 quantity: int = 1) -> CartItem:
        if quantity < 1:
            raise CartError("Quantity must be at least 1")
        if variant is None and product.has_variant_axes:
            raise VariantRequiredError()
        if variant is not None and variant.stock == 0:
            raise OutOfStockError()

        key = cart_item_key(product.id, variant.id if variant else None)
        existing = self.get(key)
        if existing:
            existing.quantity += quantity
            return existing

        item = CartItem(
            id=key,
            product_id=product.id,
            name=product.name,
            price=product.price,
            image_url=product.image_url,
            quantity=quantity,
            variant=CartVariant(id=variant.id, size=variant.size, color=variant.color) if variant else None,
            store=CartStoreInfo(
                id=product.store.id,
                name=product.store.name,
                whatsapp=product.store.whatsapp,
                address=product.store.address,
                city=product.store.city,
            ),
        )
        self.items.append(item)
        return item

    def update_quantity(self, key: str, delta: int) -> CartItem:
        """Shift a line's quantity by `delta`, never going below 1."""
        item = self._require(key)
        item.quantity = max(1, item.quantity + delta)
        return item

    def remove_item(self, key: str) -> None:
        self._require(key)
        self.items = [item for item in self.items if item.id != key]

    def group_by_store(self) -> "OrderedDict[str, List[CartItem]]":
        groups: "OrderedDict[str, List[CartItem]]" = OrderedDict()
        for item in self.items:
            groups.setdefault(item.store.name, []).append(item)
        return groups

    def total(self) -> float:
        return sum(item.price * item.quantity for item in self.items)

    def to_documents(self) -> List[Dict[str, Any]]:
        return [item.model_dump() for item in self.items]


class CartRepository:
    """Keeps each shopper's cart under the session id their device generated."""

    collection = "cart"

    def __init__(self, db):
        self.db = db

    def load(self, session_id: str) -> CartStore:
        doc = self.db[self.collection].find_one({"session_id": session_id})
        if not doc:
            return CartStore()
        return CartStore(Cart.model_validate(doc).items)

    def save(self, session_id: str, cart: CartStore) -> None:
        document = Cart(session_id=session_id, items=cart.items).model_dump()
        # Last write wins across tabs/devices sharing a session id
        self.db[self.collection].update_one(
            {"session_id": session_id},
            {"$set": document},
            upsert=True,
        )
        logger.debug("Saved cart %s with %d item(s)", session_id, len(cart))
