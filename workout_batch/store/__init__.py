from workout_batch.store.base import Store
from workout_batch.store.memory import InMemoryStore
from workout_batch.store.postgres import PostgresStore

__all__ = [
    "InMemoryStore",
    "PostgresStore",
    "Store",
]
