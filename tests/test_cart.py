import mongomock
import pytest
from pydantic import ValidationError

from cart import (
    CartError,
    CartItemNotFound,
    CartRepository,
    CartStore,
    OutOfStockError,
    VariantRequiredError,
    cart_item_key,
)
from conftest import make_product, make_store, make_variant

STORE_A = make_store("sa", name="A")
STORE_B = make_store("sb", name="B", whatsapp="21 3333-4444")


def test_same_product_and_variant_merges_into_one_line():
    cart = CartStore()
    product = make_product("p1", colors=["Vermelho"], sizes=["M"])
    variant = make_variant("v1", color="Vermelho", size="M", stock=3)

    cart.add_item(product, variant)
    cart.add_item(product, variant)

    assert len(cart) == 1
    assert cart.items[0].id == "p1-v1"
    assert cart.items[0].quantity == 2
    assert cart.items[0].variant.color == "Vermelho"


def test_different_variants_are_separate_lines():
    cart = CartStore()
    product = make_product("p1", sizes=["M", "G"])
    cart.add_item(product, make_variant("v1", size="M", stock=1))
    cart.add_item(product, make_variant("v2", size="G", stock=1))
    assert [i.id for i in cart.items] == ["p1-v1", "p1-v2"]


def test_plain_product_uses_product_id_as_key():
    cart = CartStore()
    cart.add_item(make_product("p7"), quantity=3)
    assert cart.items[0].id == cart_item_key("p7") == "p7"
    assert cart.items[0].quantity == 3
    assert cart.items[0].variant is None


def test_variant_required_when_product_has_axes():
    with pytest.raises(VariantRequiredError):
        CartStore().add_item(make_product("p1", colors=["Azul"]))


def test_out_of_stock_variant_rejected():
    cart = CartStore()
    with pytest.raises(OutOfStockError):
        cart.add_item(make_product("p1", sizes=["M"]), make_variant("v1", size="M", stock=0))
    assert len(cart) == 0


def test_non_positive_quantity_rejected():
    with pytest.raises(CartError):
        CartStore().add_item(make_product("p1"), quantity=0)


def test_update_quantity_floors_at_one():
    cart = CartStore()
    cart.add_item(make_product("p1"))
    assert cart.update_quantity("p1", -5).quantity == 1
    assert cart.update_quantity("p1", 4).quantity == 5
    assert cart.update_quantity("p1", -1).quantity == 4


def test_remove_ignores_quantity():
    cart = CartStore()
    cart.add_item(make_product("p1"), quantity=9)
    cart.remove_item("p1")
    assert len(cart) == 0
    with pytest.raises(CartItemNotFound):
        cart.remove_item("p1")
    with pytest.raises(CartItemNotFound):
        cart.update_quantity("p1", 1)


def test_group_by_store_collects_interleaved_items():
    cart = CartStore()
    cart.add_item(make_product("a1", store=STORE_A))
    cart.add_item(make_product("b1", store=STORE_B))
    cart.add_item(make_product("a2", store=STORE_A))

    groups = cart.group_by_store()
    assert list(groups) == ["A", "B"]
    assert [i.id for i in groups["A"]] == ["a1", "a2"]
    assert [i.id for i in groups["B"]] == ["b1"]


def test_total():
    cart = CartStore()
    cart.add_item(make_product("p1", price=10.0), quantity=2)
    cart.add_item(make_product("p2", price=5.5, store=STORE_B))
    assert cart.total() == pytest.approx(25.5)


def test_snapshot_is_taken_at_add_time():
    product = make_product("p1", price=10.0, image_url="https://img/1.png")
    cart = CartStore()
    cart.add_item(product)
    item = cart.items[0]
    assert item.store.name == "Loja A"
    assert item.store.whatsapp == "(11) 98765-4321"
    assert item.image_url == "https://img/1.png"


def test_documents_round_trip_through_repository():
    repo = CartRepository(mongomock.MongoClient().db)
    cart = CartStore()
    cart.add_item(make_product("p1", sizes=["M"]), make_variant("v1", size="M", stock=2), quantity=2)
    cart.add_item(make_product("b1", store=STORE_B))
    repo.save("sess-1", cart)

    loaded = repo.load("sess-1")
    assert [i.id for i in loaded.items] == ["p1-v1", "b1"]
    assert loaded.items[0].quantity == 2
    assert loaded.items[0].variant.size == "M"
    assert repo.load("unknown").items == []


def test_saving_again_overwrites():
    repo = CartRepository(mongomock.MongoClient().db)
    cart = CartStore()
    cart.add_item(make_product("p1"))
    repo.save("sess", cart)
    cart.remove_item("p1")
    repo.save("sess", cart)
    assert len(repo.load("sess")) == 0


def test_repository_keeps_the_cart_document_shape():
    db = mongomock.MongoClient().db
    repo = CartRepository(db)
    cart = CartStore()
    cart.add_item(make_product("p1"))
    repo.save("sess", cart)

    doc = db["cart"].find_one({"session_id": "sess"})
    assert doc["session_id"] == "sess"
    assert doc["items"][0]["store"]["name"] == "Loja A"

    db["cart"].insert_one({"session_id": "broken", "items": [{
        "id": "p1", "product_id": "p1", "name": "Boné", "price": 10, "quantity": 0,
        "store": {"name": "Loja A", "whatsapp": "11999990000"},
    }]})
    with pytest.raises(ValidationError):
        repo.load("broken")
