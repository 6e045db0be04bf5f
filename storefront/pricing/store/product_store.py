from __future__ import annotations

import asyncio
import json
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from ..domain.models import Product, product_from_dict
from ..errors import InvalidProduct, ProductNotFound

IMMUTABLE_FIELDS = {"id"}
_PRODUCT_FIELDS = {f.name for f in fields(Product)}


def seed_path() -> Path:
    return Path(__file__).resolve().parent / "data" / "products.json"


def load_seed_products(path: Optional[Path] = None) -> List[Product]:
    p = path or seed_path()
    if not p.exists():
        return []
    data = json.loads(p.read_text(encoding="utf-8"))
    return [product_from_dict(it) for it in data.get("products", [])]


class ProductRepository(Protocol):
    async def get_all(self) -> List[Product]: ...

    async def get_by_id(self, product_id: int) -> Product: ...

    async def create(self, product: Product) -> Product: ...

    async def update(self, product_id: int, changes: Dict[str, Any]) -> Product: ...

    async def delete(self, product_id: int) -> None: ...


class InMemoryProductStore:
    """
    Async product store backed by a dict. Each call sleeps for the
    configured latency to behave like the remote catalog service.
    """

    def __init__(self, products: Optional[Iterable[Product]] = None, *, latency_ms: Optional[int] = None):
        if latency_ms is None:
            from storefront.core.settings import get_settings

            latency_ms = get_settings().store_latency_ms
        self.latency = max(int(latency_ms), 0) / 1000
        self._items: Dict[int, Product] = {}
        self._lock = asyncio.Lock()
        for p in products if products is not None else load_seed_products():
            self._items[p.id] = p

    async def _delay(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def get_all(self) -> List[Product]:
        await self._delay()
        return [self._items[k] for k in sorted(self._items)]

    async def get_by_id(self, product_id: int) -> Product:
        await self._delay()
        try:
            return self._items[int(product_id)]
        except KeyError:
            raise ProductNotFound(f"Product {product_id} not found", {"productId": product_id}) from None

    async def create(self, product: Product) -> Product:
        await self._delay()
        async with self._lock:
            new_id = max(self._items, default=0) + 1
            created = replace(product, id=new_id)
            self._items[new_id] = created
            return created

    async def update(self, product_id: int, changes: Dict[str, Any]) -> Product:
        """Apply a partial update; returns the new Product instance."""
        await self._delay()
        bad = sorted(set(changes) - _PRODUCT_FIELDS)
        if bad:
            raise InvalidProduct(f"Unknown product fields: {bad}", {"fields": bad})
        locked = sorted(set(changes) & IMMUTABLE_FIELDS)
        if locked:
            raise InvalidProduct(f"Fields cannot be changed: {locked}", {"fields": locked})

        async with self._lock:
            current = self._items.get(int(product_id))
            if current is None:
                raise ProductNotFound(f"Product {product_id} not found", {"productId": product_id})
            updated = replace(current, **changes)
            self._items[current.id] = updated
            return updated

    async def delete(self, product_id: int) -> None:
        await self._delay()
        async with self._lock:
            if self._items.pop(int(product_id), None) is None:
                raise ProductNotFound(f"Product {product_id} not found", {"productId": product_id})
