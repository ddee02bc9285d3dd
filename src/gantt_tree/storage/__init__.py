from .collection import Collection
from .container import StoreContainer
from .interfaces import ID_FIELD, Store

__all__ = ["Collection", "ID_FIELD", "Store", "StoreContainer"]
