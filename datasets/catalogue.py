"""Seed catalogue loading.

The seed catalogue is the static set of categories and listings shown when
the dataset store is empty. It is read from JSON and handed to whichever
component needs it; nothing here keeps it in module state.
"""

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Union

from .models import CatalogueCategory, DatasetListing, SeedCatalogue
from .pricing import Currency, Price
from .sizes import mb_to_bytes, parse_size_mb

logger = logging.getLogger(__name__)

DEFAULT_CATALOGUE_PATH = Path(__file__).resolve().parent / 'seed' / 'catalogue.json'

class CatalogueError(Exception):
    """Raised when a seed catalogue file cannot be read or is malformed."""
    pass

def _listing_from_entry(entry: Dict[str, Any], category_name: str) -> DatasetListing:
    return DatasetListing(
        id=entry['id'],
        name=entry['name'],
        description=entry['description'],
        category=category_name,
        company=entry.get('company', entry['name']),
        cid=entry['cid'],
        size_bytes=mb_to_bytes(parse_size_mb(entry['size'])),
        publisher_address=entry['seller'],
        price=Price(unit=Currency.OYD, amount=Decimal(str(entry['oyd_cost']))),
        downloads=entry.get('downloads', 0),
        created_at=entry['timestamp'],
    )

def parse_seed_catalogue(raw: Dict[str, Any]) -> SeedCatalogue:
    """Build a SeedCatalogue from its JSON document.

    Raises:
        CatalogueError: If an entry is missing fields or has invalid values
    """
    categories = []
    datasets = []
    try:
        for item in raw.get('categories', []):
            categories.append(CatalogueCategory(
                id=item['id'],
                name=item['name'],
                description=item.get('description', ''),
                companies=item.get('companies', []),
            ))
            for entry in item.get('datasets', []):
                datasets.append(_listing_from_entry(entry, item['name']))
    except (KeyError, ValueError) as e:
        raise CatalogueError(f"Invalid seed catalogue entry: {e}")

    return SeedCatalogue(categories=categories, datasets=datasets)

def load_seed_catalogue(path: Union[str, Path, None] = None) -> SeedCatalogue:
    """Load the seed catalogue from a JSON file (the bundled one by default)."""
    path = Path(path) if path else DEFAULT_CATALOGUE_PATH
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogueError(f"Failed to read seed catalogue {path}: {e}")

    catalogue = parse_seed_catalogue(raw)
    logger.info(
        f"Loaded seed catalogue from {path}: "
        f"{len(catalogue.categories)} categories, {len(catalogue.datasets)} datasets"
    )
    return catalogue
