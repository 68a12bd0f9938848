"""Collaborators injected into route handlers.

Each route receives its manager or client through FastAPI's Depends, so tests
can swap in fakes with app.dependency_overrides.
"""

from functools import lru_cache

from config import settings_conf
from data_requests import DataRequestManager
from database import get_pool
from datasets import DatasetManager, SeedCatalogue, load_seed_catalogue
from storage import StorageClient

@lru_cache(maxsize=1)
def get_seed_catalogue() -> SeedCatalogue:
    return load_seed_catalogue(settings_conf['seed_catalogue'])

def get_data_request_manager() -> DataRequestManager:
    return DataRequestManager()

def get_dataset_manager() -> DatasetManager:
    return DatasetManager(
        seed=get_seed_catalogue(),
        price_policy=settings_conf['price_policy']
    )

def get_storage_client() -> StorageClient:
    return StorageClient()

def get_pool_factory():
    """The coroutine function health checks use to reach the database pool."""
    return get_pool
