from decimal import Decimal

import pytest

from storefront.pricing.domain.models import Product
from storefront.pricing.errors import InvalidProduct, ProductNotFound
from storefront.pricing.store.product_store import InMemoryProductStore, load_seed_products


def test_seed_products_parse():
    products = load_seed_products()

    assert len(products) >= 5
    assert len({p.id for p in products}) == len(products)
    assert all(p.base_price is not None and p.base_price > p.purchase_price for p in products)


@pytest.mark.anyio
async def test_get_all_sorted_by_id(store):
    assert [p.id for p in await store.get_all()] == [1, 2, 3]


@pytest.mark.anyio
async def test_get_unknown_raises(store):
    with pytest.raises(ProductNotFound) as exc:
        await store.get_by_id(99)
    assert exc.value.meta == {"productId": 99}


@pytest.mark.anyio
async def test_create_assigns_next_id(store):
    created = await store.create(Product(id=0, name="Yogurt", category="Dairy", base_price=Decimal("90")))

    assert created.id == 4
    assert (await store.get_by_id(4)).name == "Yogurt"


@pytest.mark.anyio
async def test_update_returns_new_instance(store):
    before = await store.get_by_id(1)
    after = await store.update(1, {"base_price": Decimal("120"), "stock": 9})

    assert before.base_price == Decimal("100")
    assert (after.base_price, after.stock) == (Decimal("120"), 9)
    assert (await store.get_by_id(1)) == after


@pytest.mark.anyio
async def test_update_rejects_id_and_unknown_fields(store):
    with pytest.raises(InvalidProduct):
        await store.update(1, {"id": 7})
    with pytest.raises(InvalidProduct):
        await store.update(1, {"colour": "red"})


@pytest.mark.anyio
async def test_delete(store):
    await store.delete(2)

    with pytest.raises(ProductNotFound):
        await store.get_by_id(2)
    with pytest.raises(ProductNotFound):
        await store.delete(2)


@pytest.mark.anyio
async def test_latency_is_applied():
    slow = InMemoryProductStore([], latency_ms=5)
    assert slow.latency == 0.005
    assert await slow.get_all() == []
