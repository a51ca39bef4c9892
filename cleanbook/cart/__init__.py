from cleanbook.cart.storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from cleanbook.cart.store import CartStore, calculate_total_price

__all__ = [
    "CartStore",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "calculate_total_price",
]
