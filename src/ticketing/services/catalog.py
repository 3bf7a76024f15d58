"""Ticket catalog: SKU to Stripe price mapping.

The catalog is loaded once per process into a read-only mapping. Lookups
normalize the SKU first so that casing and separator variants coming from a
stale or hand-edited client still resolve.
"""

import json
import re
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from ticketing.config import get_settings
from ticketing.models.errors import ConfigurationError, UnknownSku
from ticketing.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PRICE_MAP: dict[str, str] = {
    "PARISIENS_ADULT": "price_1SFuSsBq3JaiOlPJhMq7H9YM",
    "PARISIENS_CHILD": "price_1SFuTDBq3JaiOlPJrLzArpUb",
    "MOUCHES_ADULT": "price_1SFuTmBq3JaiOlPJNYtSb4I3",
    "MOUCHES_CHILD": "price_1SFuTyBq3JaiOlPJy4lutU4K",
    "BIGBUSCOMBO_ADULT": "price_1SFuUZBq3JaiOlPJjrdeFNVL",
    "BIGBUSCOMBO_CHILD": "price_1SFuV4Bq3JaiOlPJtSPjwSO9",
}

_SEPARATORS = re.compile(r"[\s\-.]+")
_REPEATED_UNDERSCORE = re.compile(r"_+")


def normalize_sku(sku: str) -> str:
    """Canonical SKU form: trimmed, uppercase, ``_`` as the only separator.

    >>> normalize_sku(" mouches-adult ")
    'MOUCHES_ADULT'
    """
    value = _SEPARATORS.sub("_", sku.strip().upper())
    return _REPEATED_UNDERSCORE.sub("_", value).strip("_")


class Catalog:
    """Immutable SKU -> price mapping."""

    def __init__(self, price_map: Mapping[str, str]) -> None:
        normalized = {normalize_sku(sku): price for sku, price in price_map.items()}
        self._prices: Mapping[str, str] = MappingProxyType(normalized)
        self._skus_by_price: Mapping[str, str] = MappingProxyType(
            {price: sku for sku, price in normalized.items()}
        )

    def __len__(self) -> int:
        return len(self._prices)

    def __contains__(self, sku: object) -> bool:
        return isinstance(sku, str) and normalize_sku(sku) in self._prices

    def resolve(self, sku: str) -> str:
        """Map a SKU to its Stripe price ID.

        Raises:
            UnknownSku: If the normalized SKU is not sold.
        """
        key = normalize_sku(sku)
        price = self._prices.get(key)
        if price is None:
            raise UnknownSku(key)
        return price

    def sku_for_price(self, price_ref: str | None) -> str | None:
        """Reverse lookup used when the side channel lost a line's SKU."""
        if not price_ref:
            return None
        return self._skus_by_price.get(price_ref)

    def skus(self) -> list[str]:
        return sorted(self._prices)

    @classmethod
    def from_json(cls, raw: str) -> "Catalog":
        """Build a catalog from a JSON object of ``{sku: price_id}``.

        Raises:
            ConfigurationError: If the document is not a non-empty string map.
        """
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ConfigurationError("TICKET_CATALOG", message="TICKET_CATALOG is not valid JSON") from e

        if not isinstance(data, dict) or not data:
            raise ConfigurationError("TICKET_CATALOG", message="TICKET_CATALOG must be a non-empty object")
        if not all(isinstance(k, str) and isinstance(v, str) and k and v for k, v in data.items()):
            raise ConfigurationError("TICKET_CATALOG", message="TICKET_CATALOG entries must map strings to strings")
        return cls(data)


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    """Load the process-wide catalog once.

    Uses TICKET_CATALOG when set, otherwise the built-in price map.
    """
    override = get_settings().catalog_override
    if override:
        catalog = Catalog.from_json(override)
        logger.info("Ticket catalog loaded from TICKET_CATALOG (%d SKUs)", len(catalog))
    else:
        catalog = Catalog(DEFAULT_PRICE_MAP)
    return catalog
