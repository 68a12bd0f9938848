"""Price model for dataset listings.

A price is always a tagged value: the unit it is denominated in plus a
Decimal amount. Wire payloads carry prices in several shapes (`oydCost`,
`priceETH`, `priceUSDC`); the helpers here are the only place those shapes
are converted to and from `Price`.
"""

import math
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict

class Currency(str, Enum):
    """Units a dataset can be priced and paid in."""
    ETH = "ETH"
    USDC = "USDC"
    OYD = "OYD"  # Marketplace datacoin

# Decimal places of each unit's on-chain integer representation
CURRENCY_DECIMALS = {
    Currency.ETH: 18,
    Currency.USDC: 6,
    Currency.OYD: 18,
}

# Index used by the registry contract's currency argument
CURRENCY_CODES = {
    Currency.ETH: 0,
    Currency.USDC: 1,
    Currency.OYD: 2,
}

class PricePolicy(str, Enum):
    """How a listing's OYD price is derived from its payload size."""
    PER_MEGABYTE = "mb"
    PER_KILOBYTE = "kb"

POLICY_DIVISORS = {
    PricePolicy.PER_MEGABYTE: 1024 * 1024,
    PricePolicy.PER_KILOBYTE: 1024,
}

class Price(BaseModel):
    """An amount denominated in one currency."""
    model_config = ConfigDict(frozen=True)

    unit: Currency
    amount: Decimal

    def __str__(self) -> str:
        return f"{self.amount} {self.unit.value}"

def derive_price(size_bytes: int, policy: PricePolicy = PricePolicy.PER_MEGABYTE) -> Price:
    """Derive the OYD price of a payload: one unit per started megabyte (or kilobyte).

    Raises:
        ValueError: If size_bytes is negative
    """
    if size_bytes < 0:
        raise ValueError(f"Payload size cannot be negative: {size_bytes}")
    units = math.ceil(size_bytes / POLICY_DIVISORS[PricePolicy(policy)])
    return Price(unit=Currency.OYD, amount=Decimal(max(units, 1)))

def price_from_wire(value: Any, unit: Currency) -> Price:
    """Parse a wire amount (string or number) into a Price.

    Raises:
        ValueError: If the amount is empty, not numeric, or not positive
    """
    if value is None or str(value).strip() == "":
        raise ValueError(f"{Currency(unit).value} price is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid {Currency(unit).value} price: {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"{Currency(unit).value} price must be positive")
    return Price(unit=Currency(unit), amount=amount)

def price_to_wire(price: Price) -> Dict[str, str]:
    return {"unit": price.unit.value, "amount": str(price.amount)}

def prices_from_metadata(price_eth: Any, price_usdc: Any) -> List[Price]:
    """Convert the upload form's priceETH/priceUSDC pair into prices."""
    return [
        price_from_wire(price_eth, Currency.ETH),
        price_from_wire(price_usdc, Currency.USDC),
    ]

def to_base_units(price: Price) -> int:
    """Integer amount in the currency's smallest on-chain unit (wei for ETH)."""
    scaled = price.amount.scaleb(CURRENCY_DECIMALS[price.unit])
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{price} has more precision than {price.unit.value} supports")
    return int(scaled)
