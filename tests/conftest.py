import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from schemas import CatalogProduct, ProductVariant, StorePublic


def make_store(store_id="s1", name="Loja A", whatsapp="(11) 98765-4321", **overrides):
    data = dict(
        id=store_id,
        name=name,
        whatsapp=whatsapp,
        address="Rua das Flores, 100",
        city="São Paulo",
    )
    data.update(overrides)
    return StorePublic(**data)


def make_product(product_id="p1", name="Camiseta Básica", price=39.9, store=None, **overrides):
    store = store or make_store()
    data = dict(
        id=product_id,
        store_id=store.id,
        name=name,
        price=price,
        category="Roupas Masculinas",
        store=store,
    )
    data.update(overrides)
    return CatalogProduct(**data)


def make_variant(variant_id, color=None, size=None, stock=0):
    return ProductVariant(id=variant_id, product_id="p1", color=color, size=size, stock=stock)


@pytest.fixture
def mongo_db(monkeypatch):
    db = mongomock.MongoClient().db
    monkeypatch.setattr(database, "db", db)
    monkeypatch.setattr(main, "db", db)
    return db


@pytest.fixture
def client(mongo_db):
    return TestClient(main.app)


@pytest.fixture
def owner_headers():
    return {"X-User-Id": "owner-1"}


@pytest.fixture
def store_payload():
    return {
        "name": "Loja Central",
        "whatsapp": "(11) 98765-4321",
        "address": "Av. Paulista, 1000",
        "city": "São Paulo",
        "state": "SP",
        "latitude": -23.5614,
        "longitude": -46.6559,
        "opening_time": "09:00",
        "closing_time": "18:00",
        "operating_days": ["monday", "tuesday", "wednesday", "thursday", "friday"],
    }


@pytest.fixture
def store(client, owner_headers, store_payload):
    resp = client.post("/api/stores", json=store_payload, headers=owner_headers)
    assert resp.status_code == 201
    return resp.json()
