"""Grouping and per-company statistics for the marketplace dashboard."""

from typing import Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from datasets import CatalogueCategory, DatasetListing
from datasets.sizes import format_total_mb, parse_size_mb

class CompanyStats(BaseModel):
    company: str
    dataset_count: int
    total_downloads: int
    total_size: str

class CategoryOverview(BaseModel):
    category: str
    description: str = ""
    dataset_count: int = 0
    companies: List[CompanyStats] = Field(default_factory=list)

def total_size(labels: Iterable[str]) -> str:
    """Sum size labels ("900 MB", "1.5 GB") into one display label."""
    return format_total_mb(sum(parse_size_mb(label) for label in labels))

def group_by_category(
    listings: Iterable[DatasetListing],
    categories: Sequence[Union[str, CatalogueCategory]] = ()
) -> Dict[str, List[DatasetListing]]:
    """Group listings by category name.

    Named categories come first in the given order, even when empty; any
    other category follows in the order it is first seen.
    """
    groups: Dict[str, List[DatasetListing]] = {
        c.name if isinstance(c, CatalogueCategory) else str(c): [] for c in categories
    }
    for listing in listings:
        groups.setdefault(listing.category.value, []).append(listing)
    return groups

def group_by_company(listings: Iterable[DatasetListing]) -> Dict[str, List[DatasetListing]]:
    """Group listings by publisher, in first-seen order."""
    groups: Dict[str, List[DatasetListing]] = {}
    for listing in listings:
        groups.setdefault(listing.publisher, []).append(listing)
    return groups

def company_stats(company: str, listings: Sequence[DatasetListing]) -> CompanyStats:
    return CompanyStats(
        company=company,
        dataset_count=len(listings),
        total_downloads=sum(listing.downloads for listing in listings),
        total_size=format_total_mb(
            sum(listing.size_bytes for listing in listings) / (1024 * 1024)
        ),
    )

def category_overview(
    listings: Iterable[DatasetListing],
    categories: Sequence[CatalogueCategory],
    category: Optional[str] = None
) -> List[CategoryOverview]:
    """Per-category company statistics, the catalogue's companies listed first."""
    by_category = group_by_category(listings, categories)
    described = {c.name: c for c in categories}

    overview = []
    for name, group in by_category.items():
        if category and category not in (name, getattr(described.get(name), 'id', None)):
            continue
        entry = described.get(name)
        companies = group_by_company(group)
        order = [c for c in (entry.companies if entry else []) if c in companies]
        order += [c for c in companies if c not in order]
        overview.append(CategoryOverview(
            category=name,
            description=entry.description if entry else "",
            dataset_count=len(group),
            companies=[company_stats(c, companies[c]) for c in order],
        ))
    return overview
