"""Datasets module for managing marketplace dataset listings.

This module provides functionality for:
- Recording a listing once its content is in off-chain storage
- Deriving the listing price from the payload size
- Fetching and filtering listings
- Falling back to a seed catalogue when the store is empty
"""

import logging
from typing import Any, Dict, List, Optional

from asyncpg.exceptions import UniqueViolationError

from database import get_pool
from .catalogue import CatalogueError, load_seed_catalogue, parse_seed_catalogue
from .ids import MonotonicIdGenerator, slugify
from .models import (
    CatalogueCategory, DatasetCategory, DatasetListing, SeedCatalogue, UPLOAD_CATEGORIES
)
from .pricing import (
    Currency, Price, PricePolicy, derive_price, price_from_wire, price_to_wire,
    prices_from_metadata, to_base_units
)
from .sizes import format_size, format_total_mb, parse_size_mb

logger = logging.getLogger(__name__)

# User-mutable fields for listings
MUTABLE_FIELDS = {
    'name',
    'description',
}

# System-managed fields (fixed at creation)
SYSTEM_FIELDS = {
    'id',
    'cid',
    'size_bytes',
    'publisher_address',
    'price',
    'list_prices',
    'downloads',
    'created_at',
}

class ListingError(Exception):
    """Base exception for listing operations."""
    pass

class ListingNotFoundError(ListingError):
    """Raised when a listing is not found."""
    pass

class DuplicateContentError(ListingError):
    """Raised when a listing already exists for a content identifier."""
    pass

class DatasetManager:
    """Manager class for handling dataset listing operations."""

    def __init__(
        self,
        pool=None,
        seed: Optional[SeedCatalogue] = None,
        price_policy: PricePolicy = PricePolicy.PER_MEGABYTE
    ):
        """Initialize the dataset manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
            seed: Optional seed catalogue served while the store holds no datasets
            price_policy: How prices are derived for listings created here
        """
        self.pool = pool
        self.seed = seed
        self.price_policy = PricePolicy(price_policy)
        self._next_id = MonotonicIdGenerator('dataset')

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    def new_dataset_id(self, label: str) -> str:
        return f"{slugify(label)}-{self._next_id.next_value()}"

    async def create_dataset(
        self,
        name: str,
        description: str,
        category: DatasetCategory,
        cid: str,
        size_bytes: int,
        publisher_address: str,
        company: Optional[str] = None,
        list_prices: Optional[List[Price]] = None
    ) -> DatasetListing:
        """Record a new listing for content already in off-chain storage.

        The OYD price is derived here from `size_bytes` and stored; it is
        never recomputed afterwards.

        Args:
            name: Display name
            description: Dataset description
            category: Listing category
            cid: Content identifier returned by the storage service
            size_bytes: Payload size
            publisher_address: Publisher wallet address
            company: Optional publisher display name
            list_prices: Optional ETH/USDC prices declared by the publisher

        Returns:
            The created listing

        Raises:
            DuplicateContentError: If a listing already references `cid`
            ListingError: If creation fails
        """
        if not cid:
            raise ListingError("A content identifier is required")

        category = DatasetCategory(category)
        price = derive_price(size_bytes, self.price_policy)
        list_prices = [p for p in (list_prices or []) if p.unit != Currency.OYD]
        dataset_id = self.new_dataset_id(company or name)

        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        '''
                        INSERT INTO datasets (
                            id, name, description, category, company, cid,
                            size_bytes, publisher_address
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                        RETURNING *
                        ''',
                        dataset_id, name, description, category.value, company,
                        cid, size_bytes, publisher_address
                    )

                    for p, derived in [(price, True)] + [(p, False) for p in list_prices]:
                        await conn.execute(
                            '''
                            INSERT INTO dataset_prices (dataset_id, unit, amount, derived)
                            VALUES ($1, $2, $3, $4)
                            ''',
                            dataset_id, p.unit.value, p.amount, derived
                        )
        except UniqueViolationError:
            raise DuplicateContentError(f"A listing already exists for content {cid}")
        except Exception as e:
            logger.error(f"Error creating dataset: {e}")
            raise ListingError(f"Failed to create dataset: {e}")

        logger.info(f"Created dataset {dataset_id} for {cid} priced at {price}")
        return _listing_from_row(row, [
            {'unit': p.unit.value, 'amount': p.amount, 'derived': derived}
            for p, derived in [(price, True)] + [(p, False) for p in list_prices]
        ])

    async def get_dataset(self, dataset_id: str) -> DatasetListing:
        """Get a listing by ID, looking in the seed catalogue as well.

        Raises:
            ListingNotFoundError: If listing doesn't exist
        """
        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    'SELECT * FROM datasets WHERE id = $1',
                    dataset_id
                )
                prices = await conn.fetch(
                    'SELECT * FROM dataset_prices WHERE dataset_id = $1',
                    dataset_id
                ) if row else []
        except Exception as e:
            logger.error(f"Error fetching dataset {dataset_id}: {e}")
            raise ListingError(f"Failed to fetch dataset: {e}")

        if row:
            return _listing_from_row(row, prices)

        if self.seed:
            for listing in self.seed.datasets:
                if listing.id == dataset_id:
                    return listing

        raise ListingNotFoundError(f"Dataset {dataset_id} not found")

    async def list_datasets(self, category: Optional[str] = None) -> List[DatasetListing]:
        """List datasets newest first, optionally restricted to one category.

        When the store holds no datasets at all, the seed catalogue is served.
        """
        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                if category:
                    rows = await conn.fetch(
                        'SELECT * FROM datasets WHERE category = $1 ORDER BY created_at DESC',
                        category
                    )
                else:
                    rows = await conn.fetch(
                        'SELECT * FROM datasets ORDER BY created_at DESC'
                    )

                if not rows and self.seed:
                    total = await conn.fetchval('SELECT count(*) FROM datasets')
                    if not total:
                        return self.seed_datasets(category)

                prices = await conn.fetch(
                    'SELECT * FROM dataset_prices WHERE dataset_id = ANY($1::text[])',
                    [row['id'] for row in rows]
                ) if rows else []
        except Exception as e:
            logger.error(f"Error listing datasets: {e}")
            raise ListingError(f"Failed to list datasets: {e}")

        by_dataset: Dict[str, List[Any]] = {}
        for price in prices:
            by_dataset.setdefault(price['dataset_id'], []).append(price)

        return [_listing_from_row(row, by_dataset.get(row['id'], [])) for row in rows]

    def seed_datasets(self, category: Optional[str] = None) -> List[DatasetListing]:
        if not self.seed:
            return []
        if not category:
            return list(self.seed.datasets)
        match = self.seed.category_for(category)
        name = match.name if match else category
        return [d for d in self.seed.datasets if d.category.value == name]

    def categories(self) -> List[CatalogueCategory]:
        return list(self.seed.categories) if self.seed else []

    async def update_dataset(self, dataset_id: str, updates: Dict[str, Any]) -> DatasetListing:
        """Update a listing's descriptive fields.

        Raises:
            ListingNotFoundError: If listing doesn't exist
            ListingError: If update touches fields other than MUTABLE_FIELDS
        """
        invalid_fields = set(updates.keys()) - MUTABLE_FIELDS
        if invalid_fields:
            raise ListingError(f"Cannot update fields: {invalid_fields}")
        if not updates:
            return await self.get_dataset(dataset_id)

        fields = []
        values = []
        for i, (field, value) in enumerate(updates.items(), start=1):
            fields.append(f"{field} = ${i}")
            values.append(value)
        values.append(dataset_id)

        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'''
                    UPDATE datasets
                    SET {', '.join(fields)}, updated_at = now()
                    WHERE id = ${len(values)}
                    RETURNING id
                    ''',
                    *values
                )
        except Exception as e:
            logger.error(f"Error updating dataset: {e}")
            raise ListingError(f"Failed to update dataset: {e}")

        if not row:
            raise ListingNotFoundError(f"Dataset {dataset_id} not found")

        return await self.get_dataset(dataset_id)

def _listing_from_row(row, prices) -> DatasetListing:
    derived = None
    list_prices = []
    for p in prices:
        price = Price(unit=p['unit'], amount=p['amount'])
        if p['derived']:
            derived = price
        else:
            list_prices.append(price)

    if derived is None:
        raise ListingError(f"Dataset {row['id']} has no derived price")

    return DatasetListing(
        id=row['id'],
        name=row['name'],
        description=row['description'],
        category=row['category'],
        company=row['company'],
        cid=row['cid'],
        size_bytes=row['size_bytes'],
        publisher_address=row['publisher_address'],
        price=derived,
        list_prices=list_prices,
        downloads=row['downloads'],
        created_at=row['created_at'],
    )

__all__ = [
    'DatasetManager', 'ListingError', 'ListingNotFoundError', 'DuplicateContentError',
    'DatasetListing', 'DatasetCategory', 'UPLOAD_CATEGORIES',
    'CatalogueCategory', 'SeedCatalogue', 'CatalogueError',
    'load_seed_catalogue', 'parse_seed_catalogue',
    'Currency', 'Price', 'PricePolicy', 'derive_price', 'price_from_wire',
    'price_to_wire', 'prices_from_metadata', 'to_base_units',
    'format_size', 'format_total_mb', 'parse_size_mb',
    'MonotonicIdGenerator',
]
