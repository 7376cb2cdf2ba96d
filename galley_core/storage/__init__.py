from galley_core.storage.documents import collection_lock, load_items, save_items
from galley_core.storage.paths import control_uri, join_uri

__all__ = [
    "collection_lock",
    "control_uri",
    "join_uri",
    "load_items",
    "save_items",
]
