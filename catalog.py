"""
Catalog of products joined with their store's public profile, and the
search/filter pipeline over it.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from bson import ObjectId

from database import to_public
from geo import DEFAULT_RADIUS_KM, Coordinates, distance_between, within_radius
from schemas import CatalogProduct, Product, Store, StorePublic
from store_hours import format_operating_days, is_store_open

logger = logging.getLogger(__name__)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def matches_query(product: CatalogProduct, query: Optional[str]) -> bool:
    if not query:
        return True
    q = query.lower()
    return any(_contains(field, q) for field in (
        product.name,
        product.category,
        product.store.name,
        product.description,
    ))


def matches_city(product: CatalogProduct, city: Optional[str]) -> bool:
    if not city:
        return True
    c = city.lower()
    return _contains(product.store.address, c) or _contains(product.store.city, c)


def matches_category(product: CatalogProduct, category: Optional[str]) -> bool:
    if not category:
        return True
    return _contains(product.category, category.lower())


def store_coordinates(product: CatalogProduct) -> Coordinates:
    return (product.store.latitude, product.store.longitude)


def filter_products(
    products: Iterable[CatalogProduct],
    query: Optional[str] = None,
    city: Optional[str] = None,
    category: Optional[str] = None,
    location: Optional[Coordinates] = None,
    radius_km: float = DEFAULT_RADIUS_KM,
) -> List[CatalogProduct]:
    """Apply every active predicate (AND). Input order is preserved."""
    result = []
    for product in products:
        if not matches_query(product, query):
            continue
        if not matches_city(product, city):
            continue
        if not matches_category(product, category):
            continue
        if location is not None and not within_radius(location, store_coordinates(product), radius_km):
            continue
        result.append(product)
    return result


def with_distances(products: Iterable[CatalogProduct], location: Optional[Coordinates]) -> List[CatalogProduct]:
    if location is None:
        return list(products)
    return [
        p.model_copy(update={"distance_km": distance_between(location, store_coordinates(p))})
        for p in products
    ]


# ---------- Catalog Store ----------

def build_catalog_product(product: Product, store: Store, now: Optional[datetime] = None) -> CatalogProduct:
    public = StorePublic(**store.model_dump(exclude={"user_id", "created_at"}))
    return CatalogProduct(
        **product.model_dump(),
        store=public,
        is_open=is_store_open(store.opening_time, store.closing_time, now),
        operating_days_label=format_operating_days(store.operating_days),
    )


def _load_stores(db, store_ids: List[str]) -> Dict[str, Store]:
    ids = [ObjectId(s) for s in set(store_ids) if ObjectId.is_valid(s)]
    stores = db["store"].find({"_id": {"$in": ids}})
    return {s["id"]: Store(**s) for s in map(to_public, stores)}


def _join(db, product_docs, now: Optional[datetime] = None) -> List[CatalogProduct]:
    products = [Product(**to_public(doc)) for doc in product_docs]
    stores = _load_stores(db, [p.store_id for p in products]) if products else {}

    catalog = []
    for product in products:
        store = stores.get(product.store_id)
        if store is None:
            logger.warning("Product %s references missing store %s", product.id, product.store_id)
            continue
        catalog.append(build_catalog_product(product, store, now))
    return catalog


def fetch_catalog(db, now: Optional[datetime] = None) -> List[CatalogProduct]:
    """All products, most recently created first."""
    docs = db["product"].find().sort("created_at", -1)
    return _join(db, docs, now)


def fetch_store_catalog(db, store_id: str, now: Optional[datetime] = None) -> List[CatalogProduct]:
    docs = db["product"].find({"store_id": store_id}).sort("created_at", -1)
    return _join(db, docs, now)
