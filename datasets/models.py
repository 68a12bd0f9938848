"""Dataset listing models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .pricing import Currency, Price, price_to_wire
from .sizes import format_size

class DatasetCategory(str, Enum):
    """Categories a listing can be filed under."""
    ENVIRONMENTAL = "Environmental"
    BUSINESS = "Business"
    HEALTHCARE = "Healthcare"
    FINANCE = "Finance"
    TECHNOLOGY = "Technology"
    EDUCATION = "Education"
    RESEARCH = "Research"
    OTHER = "Other"
    # Marketplace catalogue categories
    SUPERMART = "Supermart"
    GROCERIES = "Groceries and Food"
    PHARMACY = "Pharmacy"
    APPARELS = "Apparels"

# Categories offered by the upload form
UPLOAD_CATEGORIES = (
    DatasetCategory.ENVIRONMENTAL,
    DatasetCategory.BUSINESS,
    DatasetCategory.HEALTHCARE,
    DatasetCategory.FINANCE,
    DatasetCategory.TECHNOLOGY,
    DatasetCategory.EDUCATION,
    DatasetCategory.RESEARCH,
    DatasetCategory.OTHER,
)

class DatasetListing(BaseModel):
    """A published dataset available for purchase.

    Listings are frozen: the content identifier and the derived price are
    fixed when the listing is created.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    category: DatasetCategory
    company: Optional[str] = None
    cid: str
    size_bytes: int
    publisher_address: str
    price: Price
    list_prices: List[Price] = Field(default_factory=list)
    downloads: int = 0
    created_at: datetime

    @property
    def size(self) -> str:
        return format_size(self.size_bytes)

    @property
    def publisher(self) -> str:
        """Display name used to group listings by publisher."""
        return self.company or self.publisher_address

    def price_in(self, currency: Currency) -> Optional[Price]:
        """The listing's price in `currency`, if it is sold in that unit."""
        for price in [self.price, *self.list_prices]:
            if price.unit == currency:
                return price
        return None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category.value,
            'company': self.company,
            'cid': self.cid,
            'size': self.size,
            'size_bytes': self.size_bytes,
            'publisher_address': self.publisher_address,
            'price': price_to_wire(self.price),
            'list_prices': [price_to_wire(p) for p in self.list_prices],
            'downloads': self.downloads,
            'created_at': self.created_at.isoformat(),
        }

class CatalogueCategory(BaseModel):
    """A browsable marketplace category and the companies publishing in it."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    companies: List[str] = Field(default_factory=list)

class SeedCatalogue(BaseModel):
    """Static listings and categories used when the store holds no datasets."""
    model_config = ConfigDict(frozen=True)

    categories: List[CatalogueCategory] = Field(default_factory=list)
    datasets: List[DatasetListing] = Field(default_factory=list)

    def category_for(self, name: str) -> Optional[CatalogueCategory]:
        for category in self.categories:
            if category.name == name or category.id == name:
                return category
        return None
