"""Size label parsing and formatting ("900 MB", "1.5 GB")."""

import re

# Multiples of a megabyte, binary
UNIT_TO_MB = {
    'B': 1 / (1024 * 1024),
    'KB': 1 / 1024,
    'MB': 1.0,
    'GB': 1024.0,
    'TB': 1024.0 * 1024,
}

_SIZE_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([KMGT]?B)?\s*$', re.IGNORECASE)

def parse_size_mb(label: str) -> float:
    """Parse a size label into megabytes. A bare number is taken as MB.

    Raises:
        ValueError: If the label is not a number with an optional B/KB/MB/GB/TB unit
    """
    match = _SIZE_RE.match(label or '')
    if not match:
        raise ValueError(f"Invalid size label: {label!r}")
    value, unit = match.groups()
    return float(value) * UNIT_TO_MB[(unit or 'MB').upper()]

def format_total_mb(total_mb: float) -> str:
    """Render an aggregate size: GB with one decimal above 1024 MB, whole MB otherwise."""
    if total_mb > 1024:
        return f"{total_mb / 1024:.1f} GB"
    return f"{total_mb:.0f} MB"

def format_size(size_bytes: int) -> str:
    """Render a byte count with the largest fitting binary unit."""
    if size_bytes >= 1024 ** 3:
        return f"{size_bytes / 1024 ** 3:.1f} GB"
    if size_bytes >= 1024 ** 2:
        return f"{size_bytes / 1024 ** 2:.0f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.0f} KB"
    return f"{size_bytes} B"

def mb_to_bytes(size_mb: float) -> int:
    return int(round(size_mb * 1024 * 1024))
