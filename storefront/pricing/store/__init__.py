from .product_store import InMemoryProductStore, ProductRepository, load_seed_products

__all__ = ["InMemoryProductStore", "ProductRepository", "load_seed_products"]
