"""Dashboard presentation helpers.

Groups listings by category and publisher, computes per-publisher totals,
keeps listings fresh while a view is open and shows transient notices.
"""

from datasets.sizes import format_total_mb, parse_size_mb
from .aggregate import (
    CategoryOverview, CompanyStats, category_overview, company_stats,
    group_by_category, group_by_company, total_size
)
from .notifications import Notifier
from .refresher import ListingRefresher

__all__ = [
    'CategoryOverview', 'CompanyStats', 'category_overview', 'company_stats',
    'group_by_category', 'group_by_company', 'total_size',
    'parse_size_mb', 'format_total_mb',
    'ListingRefresher', 'Notifier',
]
