import asyncio
import contextlib
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import FastAPI, File, Header, HTTPException, Query, UploadFile, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from advertisements import (
    create_advertisement,
    delete_advertisement,
    is_admin,
    list_advertisements,
    toggle_advertisement,
)
from bulk_import import TEMPLATE, ImportFormatError, parse_product_table
from cart import CartError, CartItemNotFound, CartRepository
from catalog import build_catalog_product, fetch_catalog, fetch_store_catalog, filter_products, with_distances
from database import db, create_document, get_documents, to_public
from geo import DEFAULT_RADIUS_KM, MAX_RADIUS_KM, MIN_RADIUS_KM
from notifications import (
    cart_add_message,
    hub,
    list_notifications,
    mark_all_read,
    mark_read,
    record_notification,
)
from order_composer import compose_checkout, whatsapp_link
from schemas import (
    Advertisement,
    AdvertisementCreate,
    CatalogProduct,
    Product,
    ProductCreate,
    ProductUpdate,
    ProductVariant,
    StoreOrder,
    Store,
    StoreProfile,
    StorePublic,
    StoreUpdate,
    VariantAvailability,
)
from store_hours import format_hours, format_operating_days, is_store_open, store_status_label
from variants import DuplicateVariantError, ensure_unique_pairs, generate_variants, resolve

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

app = FastAPI(title="Acha Aí Marketplace API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------- Helpers ----------

def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid id")


def require_db():
    if db is None:
        raise HTTPException(500, "Database not configured")
    return db


def get_store_or_404(store_id: str) -> Store:
    doc = require_db()["store"].find_one({"_id": oid(store_id)})
    if not doc:
        raise HTTPException(404, "Store not found")
    return Store(**to_public(doc))


def get_product_or_404(product_id: str) -> Product:
    doc = require_db()["product"].find_one({"_id": oid(product_id)})
    if not doc:
        raise HTTPException(404, "Product not found")
    return Product(**to_public(doc))


def require_owner(store: Store, user_id: Optional[str]) -> Store:
    if not user_id:
        raise HTTPException(401, "Missing X-User-Id header")
    if store.user_id != user_id:
        raise HTTPException(403, "Only the store owner can do this")
    return store


def require_admin(user_id: Optional[str]) -> str:
    if not user_id:
        raise HTTPException(401, "Missing X-User-Id header")
    if not is_admin(require_db(), user_id):
        raise HTTPException(403, "Admin role required")
    return user_id


def owned_product(product_id: str, user_id: Optional[str]) -> Product:
    product = get_product_or_404(product_id)
    require_owner(get_store_or_404(product.store_id), user_id)
    return product


def product_variants(product_id: str) -> List[ProductVariant]:
    require_db()
    return [ProductVariant(**d) for d in get_documents("productvariant", {"product_id": product_id})]


def store_detail(store: Store) -> Dict[str, Any]:
    return {
        **StorePublic(**store.model_dump(exclude={"user_id", "created_at"})).model_dump(),
        "is_open": is_store_open(store.opening_time, store.closing_time),
        "status": store_status_label(store.opening_time, store.closing_time),
        "hours": format_hours(store.opening_time, store.closing_time),
        "operating_days_label": format_operating_days(store.operating_days),
        "contact_url": whatsapp_link(store.whatsapp),
    }


def _stamped(data: Dict[str, Any]) -> Dict[str, Any]:
    now = datetime.utcnow()
    return {**data, "created_at": now, "updated_at": now}

# ---------- Health ----------

@app.get("/")
def root():
    return {"message": "Acha Aí Marketplace API running"}

@app.get("/test")
def test_database():
    resp = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "❌ Not Set",
        "database_name": "❌ Not Set",
        "collections": []
    }
    try:
        if db is not None:
            resp["database"] = "✅ Connected"
            resp["database_url"] = "✅ Set"
            resp["database_name"] = db.name
            resp["collections"] = db.list_collection_names()
    except Exception as e:
        resp["database"] = f"⚠️ {str(e)[:80]}"
    return resp

# ---------- Catalog ----------

@app.get("/api/products", response_model=List[CatalogProduct])
def list_products(
    q: Optional[str] = None,
    city: Optional[str] = None,
    category: Optional[str] = None,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: float = Query(DEFAULT_RADIUS_KM, ge=MIN_RADIUS_KM, le=MAX_RADIUS_KM),
):
    location = (lat, lng) if lat is not None and lng is not None else None
    products = filter_products(
        fetch_catalog(require_db()),
        query=q,
        city=city,
        category=category,
        location=location,
        radius_km=radius_km,
    )
    return with_distances(products, location)

@app.get("/api/products/{product_id}", response_model=CatalogProduct)
def get_product(product_id: str):
    product = get_product_or_404(product_id)
    return build_catalog_product(product, get_store_or_404(product.store_id))

@app.get("/api/products/{product_id}/variants", response_model=List[ProductVariant])
def list_variants(product_id: str):
    get_product_or_404(product_id)
    return product_variants(product_id)

@app.get("/api/products/{product_id}/variants/availability", response_model=VariantAvailability)
def variant_availability(product_id: str, color: Optional[str] = None, size: Optional[str] = None):
    get_product_or_404(product_id)
    return resolve(product_variants(product_id), color=color or None, size=size or None)

# ---------- Stores ----------

@app.post("/api/stores", response_model=Store, status_code=status.HTTP_201_CREATED)
def create_store(profile: StoreProfile, x_user_id: Optional[str] = Header(None)):
    if not x_user_id:
        raise HTTPException(401, "Missing X-User-Id header")
    if require_db()["store"].find_one({"user_id": x_user_id}):
        raise HTTPException(409, "This account already has a store")

    store = Store(user_id=x_user_id, **profile.model_dump())
    store_id = create_document("store", store.model_dump(exclude={"id", "created_at"}))
    logger.info("Created store %s for user %s", store_id, x_user_id)
    return get_store_or_404(store_id)

@app.get("/api/stores/me", response_model=Store)
def my_store(x_user_id: Optional[str] = Header(None)):
    if not x_user_id:
        raise HTTPException(401, "Missing X-User-Id header")
    doc = require_db()["store"].find_one({"user_id": x_user_id})
    if not doc:
        raise HTTPException(404, "Store not found")
    return Store(**to_public(doc))

@app.get("/api/stores/{store_id}")
def get_store(store_id: str):
    return store_detail(get_store_or_404(store_id))

@app.patch("/api/stores/{store_id}", response_model=Store)
def update_store(store_id: str, payload: StoreUpdate, x_user_id: Optional[str] = Header(None)):
    require_owner(get_store_or_404(store_id), x_user_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes:
        changes["updated_at"] = datetime.utcnow()
        require_db()["store"].update_one({"_id": oid(store_id)}, {"$set": changes})
    return get_store_or_404(store_id)

@app.get("/api/stores/{store_id}/products", response_model=List[CatalogProduct])
def store_products(store_id: str):
    get_store_or_404(store_id)
    return fetch_store_catalog(require_db(), store_id)

# ---------- Store admin: products ----------

@app.post("/api/stores/{store_id}/products", response_model=Product, status_code=status.HTTP_201_CREATED)
def create_product(store_id: str, payload: ProductCreate, x_user_id: Optional[str] = Header(None)):
    require_owner(get_store_or_404(store_id), x_user_id)
    product = Product(store_id=store_id, **payload.model_dump())
    product_id = create_document("product", product.model_dump(exclude={"id", "created_at", "updated_at"}))
    return get_product_or_404(product_id)

@app.patch("/api/products/{product_id}", response_model=Product)
def update_product(product_id: str, payload: ProductUpdate, x_user_id: Optional[str] = Header(None)):
    owned_product(product_id, x_user_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes:
        changes["updated_at"] = datetime.utcnow()
        require_db()["product"].update_one({"_id": oid(product_id)}, {"$set": changes})
    return get_product_or_404(product_id)

@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, x_user_id: Optional[str] = Header(None)):
    owned_product(product_id, x_user_id)
    require_db()["productvariant"].delete_many({"product_id": product_id})
    require_db()["product"].delete_one({"_id": oid(product_id)})
    return {"status": "deleted"}

@app.get("/api/products/{product_id}/variants/template", response_model=List[ProductVariant])
def variants_template(product_id: str, x_user_id: Optional[str] = Header(None)):
    product = owned_product(product_id, x_user_id)
    return generate_variants(product.colors, product.sizes)

@app.put("/api/products/{product_id}/variants", response_model=List[ProductVariant])
def replace_variants(product_id: str, variants: List[ProductVariant], x_user_id: Optional[str] = Header(None)):
    owned_product(product_id, x_user_id)
    try:
        ensure_unique_pairs(variants)
    except DuplicateVariantError as e:
        raise HTTPException(400, str(e))

    # Full replacement, no diffing against the current set
    require_db()["productvariant"].delete_many({"product_id": product_id})
    docs = [
        _stamped({**v.model_dump(exclude={"id"}), "product_id": product_id})
        for v in variants
    ]
    if docs:
        require_db()["productvariant"].insert_many(docs)
    return product_variants(product_id)

@app.get("/api/import/template", response_class=PlainTextResponse)
def import_template():
    return PlainTextResponse(TEMPLATE, media_type="text/csv")

@app.post("/api/stores/{store_id}/products/import", status_code=status.HTTP_201_CREATED)
async def import_products(
    store_id: str,
    file: UploadFile = File(..., description="CSV table"),
    x_user_id: Optional[str] = Header(None),
):
    require_owner(get_store_or_404(store_id), x_user_id)
    text = (await file.read()).decode("utf-8-sig")
    try:
        products = parse_product_table(text, store_id)
    except ImportFormatError as e:
        raise HTTPException(400, str(e))

    if products:
        require_db()["product"].insert_many([
            _stamped(p.model_dump(exclude={"id", "created_at", "updated_at"}))
            for p in products
        ])
    return {"status": "ok", "imported": len(products)}

# ---------- Cart ----------

class AddToCartRequest(BaseModel):
    session_id: str
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(1, ge=1)

class UpdateCartRequest(BaseModel):
    session_id: str
    item_id: str
    delta: int

class RemoveFromCartRequest(BaseModel):
    session_id: str
    item_id: str


def cart_view(session_id: str, cart) -> Dict[str, Any]:
    return {
        "session_id": session_id,
        "items": cart.to_documents(),
        "total": round(cart.total(), 2),
    }

@app.get("/api/cart/{session_id}")
def get_cart(session_id: str):
    return cart_view(session_id, CartRepository(require_db()).load(session_id))

@app.post("/api/cart/add")
def cart_add(req: AddToCartRequest):
    product = get_product_or_404(req.product_id)
    entry = build_catalog_product(product, get_store_or_404(product.store_id))

    variant = None
    if req.variant_id:
        doc = require_db()["productvariant"].find_one({"_id": oid(req.variant_id), "product_id": product.id})
        if not doc:
            raise HTTPException(404, "Variant not found")
        variant = ProductVariant(**to_public(doc))

    repo = CartRepository(require_db())
    cart = repo.load(req.session_id)
    try:
        cart.add_item(entry, variant, req.quantity)
    except CartError as e:
        raise HTTPException(400, str(e))
    repo.save(req.session_id, cart)

    record_notification(
        require_db(),
        product.store_id,
        cart_add_message(product.name),
        product_id=product.id,
    )
    return cart_view(req.session_id, cart)

@app.post("/api/cart/update")
def cart_update(req: UpdateCartRequest):
    repo = CartRepository(require_db())
    cart = repo.load(req.session_id)
    try:
        cart.update_quantity(req.item_id, req.delta)
    except CartItemNotFound as e:
        raise HTTPException(404, str(e))
    repo.save(req.session_id, cart)
    return cart_view(req.session_id, cart)

@app.post("/api/cart/remove")
def cart_remove(req: RemoveFromCartRequest):
    repo = CartRepository(require_db())
    cart = repo.load(req.session_id)
    try:
        cart.remove_item(req.item_id)
    except CartItemNotFound as e:
        raise HTTPException(404, str(e))
    repo.save(req.session_id, cart)
    return cart_view(req.session_id, cart)

@app.get("/api/cart/{session_id}/checkout", response_model=List[StoreOrder])
def cart_checkout(session_id: str):
    """One WhatsApp order link per store in the cart."""
    return compose_checkout(CartRepository(require_db()).load(session_id))

# ---------- Homepage advertisements ----------

@app.get("/api/advertisements", response_model=List[Advertisement])
def active_advertisements():
    return list_advertisements(require_db())

@app.get("/api/admin/advertisements", response_model=List[Advertisement])
def all_advertisements(x_user_id: Optional[str] = Header(None)):
    require_admin(x_user_id)
    return list_advertisements(require_db(), active_only=False)

@app.post("/api/admin/advertisements", response_model=Advertisement, status_code=status.HTTP_201_CREATED)
def add_advertisement(payload: AdvertisementCreate, x_user_id: Optional[str] = Header(None)):
    require_admin(x_user_id)
    return create_advertisement(require_db(), payload)

@app.post("/api/admin/advertisements/{advertisement_id}/toggle", response_model=Advertisement)
def switch_advertisement(advertisement_id: str, x_user_id: Optional[str] = Header(None)):
    require_admin(x_user_id)
    ad = toggle_advertisement(require_db(), oid(advertisement_id))
    if ad is None:
        raise HTTPException(404, "Advertisement not found")
    return ad

@app.delete("/api/admin/advertisements/{advertisement_id}")
def remove_advertisement(advertisement_id: str, x_user_id: Optional[str] = Header(None)):
    require_admin(x_user_id)
    if not delete_advertisement(require_db(), oid(advertisement_id)):
        raise HTTPException(404, "Advertisement not found")
    return {"status": "deleted"}

# ---------- Store notifications ----------

@app.get("/api/stores/{store_id}/notifications")
def get_notifications(store_id: str, limit: int = Query(20, ge=1, le=100), x_user_id: Optional[str] = Header(None)):
    require_owner(get_store_or_404(store_id), x_user_id)
    items, unread = list_notifications(require_db(), store_id, limit)
    return {"items": [n.model_dump() for n in items], "unread_count": unread}

@app.post("/api/stores/{store_id}/notifications/read-all")
def read_all_notifications(store_id: str, x_user_id: Optional[str] = Header(None)):
    require_owner(get_store_or_404(store_id), x_user_id)
    return {"status": "ok", "updated": mark_all_read(require_db(), store_id)}

@app.post("/api/stores/{store_id}/notifications/{notification_id}/read")
def read_notification(store_id: str, notification_id: str, x_user_id: Optional[str] = Header(None)):
    require_owner(get_store_or_404(store_id), x_user_id)
    if not mark_read(require_db(), store_id, oid(notification_id)):
        raise HTTPException(404, "Notification not found")
    return {"status": "ok"}


async def _forward_notifications(websocket: WebSocket, subscription) -> None:
    while True:
        notification = await run_in_threadpool(subscription.next, 0.5)
        if notification is not None:
            await websocket.send_json(notification.model_dump(mode="json"))

@app.websocket("/ws/stores/{store_id}/notifications")
async def notifications_feed(websocket: WebSocket, store_id: str, user_id: str = Query(...)):
    doc = db["store"].find_one({"_id": ObjectId(store_id)}) if db is not None and ObjectId.is_valid(store_id) else None
    if not doc or doc.get("user_id") != user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # Subscribed before accept so nothing published after the handshake is missed
    with hub.subscribe(store_id) as subscription:
        await websocket.accept()
        forwarder = asyncio.create_task(_forward_notifications(websocket, subscription))
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Notification feed closed for store %s", store_id)
        finally:
            forwarder.cancel()
            try:
                with contextlib.suppress(asyncio.CancelledError):
                    await forwarder
            except Exception:
                logger.exception("Notification forwarder failed for store %s", store_id)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
