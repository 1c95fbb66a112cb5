from datetime import datetime

import mongomock

from catalog import build_catalog_product, fetch_catalog, fetch_store_catalog, filter_products, with_distances
from conftest import make_product, make_store
from schemas import Product, Store

CENTRO = make_store("s1", name="Loja Centro", city="São Paulo", latitude=-23.5505, longitude=-46.6333)
CAMPINAS = make_store("s2", name="Moda Campinas", address="Rua Barão, 5", city="Campinas",
                      latitude=-22.9099, longitude=-47.0626)
SEM_GEO = make_store("s3", name="Bazar Sem Mapa", city="Santos")

PRODUCTS = [
    make_product("p1", "Camiseta Básica", store=CENTRO, category="Roupas Masculinas"),
    make_product("p2", "Vestido Floral", store=CAMPINAS, category="Roupas Femininas",
                 description="Estampa de camiseta"),
    make_product("p3", "Perfume Importado", store=SEM_GEO, category="Cosméticos"),
    make_product("p4", "Tênis Esportivo", store=CAMPINAS, category="Calçados"),
]


def ids(products):
    return [p.id for p in products]


def test_no_filters_keeps_everything_in_order():
    assert ids(filter_products(PRODUCTS)) == ["p1", "p2", "p3", "p4"]
    assert ids(filter_products(PRODUCTS, query="", city="", category="")) == ["p1", "p2", "p3", "p4"]


def test_query_is_case_insensitive_over_any_field():
    assert ids(filter_products(PRODUCTS, query="camiseta")) == ["p1", "p2"]
    assert ids(filter_products(PRODUCTS, query="CAMPINAS")) == ["p2", "p4"]
    assert ids(filter_products(PRODUCTS, query="cosméticos")) == ["p3"]


def test_city_matches_address_or_city():
    assert ids(filter_products(PRODUCTS, city="campinas")) == ["p2", "p4"]
    assert ids(filter_products(PRODUCTS, city="barão")) == ["p2", "p4"]


def test_category_substring():
    assert ids(filter_products(PRODUCTS, category="roupas")) == ["p1", "p2"]


def test_predicates_intersect():
    assert ids(filter_products(PRODUCTS, query="camiseta", city="campinas")) == ["p2"]
    assert ids(filter_products(PRODUCTS, query="camiseta", city="campinas", category="masculinas")) == []


def test_radius_filter_keeps_stores_without_coordinates():
    user = (-23.55, -46.63)
    assert ids(filter_products(PRODUCTS, location=user, radius_km=10)) == ["p1", "p3"]
    assert ids(filter_products(PRODUCTS, location=user, radius_km=100)) == ["p1", "p2", "p3", "p4"]


def test_distances_are_attached_when_location_known():
    result = with_distances(PRODUCTS[:3], (-23.5505, -46.6333))
    assert result[0].distance_km == 0
    assert result[1].distance_km > 80
    assert result[2].distance_km is None
    assert with_distances(PRODUCTS, None)[0].distance_km is None


def test_build_catalog_product_joins_store_status():
    store = Store(id="s9", user_id="u1", name="Loja Nove", whatsapp="11999990000", address="Rua 9",
                  city="Campinas", opening_time="09:00", closing_time="18:00",
                  operating_days=["monday", "wednesday", "friday"])
    product = Product(id="p9", store_id="s9", name="Boné", price=25, category="Acessórios")

    entry = build_catalog_product(product, store, now=datetime(2025, 3, 10, 20, 0))
    assert entry.store.name == "Loja Nove"
    assert entry.is_open is False
    assert entry.operating_days_label == "Seg, Qua, Sex"


def test_fetch_catalog_is_newest_first_and_drops_orphans():
    db = mongomock.MongoClient().db
    store_id = str(db["store"].insert_one({
        "user_id": "u1", "name": "Loja Um", "whatsapp": "11999990000",
        "address": "Rua 1", "city": "Santos", "operating_days": {"bad": "json"},
    }).inserted_id)
    base = datetime(2025, 1, 1)
    for minute, name, owner in [(0, "Antigo", store_id), (5, "Novo", store_id), (9, "Órfão", "0123456789abcdef01234567")]:
        db["product"].insert_one({
            "store_id": owner, "name": name, "price": 10, "category": "Outros",
            "created_at": base.replace(minute=minute),
        })

    catalog = fetch_catalog(db)
    assert [p.name for p in catalog] == ["Novo", "Antigo"]
    assert catalog[0].store.operating_days is None
    assert catalog[0].is_open is True
    assert [p.name for p in fetch_store_catalog(db, store_id)] == ["Novo", "Antigo"]
