"""
Product catalogue - SKU lookup and line pricing for the checkout flow.

Loaded from the `products` section of the orderflow config. Prices are
`Decimal` and rounded half-up to cents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from orderflow.config import OrderflowConfig

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_money(value: Decimal) -> str:
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Product:
    sku: str
    name: str
    unit_price: Decimal
    requires_shipping: bool = True
    active: bool = True


class ProductCatalogue:
    def __init__(self, products: Iterable[Product], currency: str = "EUR") -> None:
        self.currency = currency
        self._products: Dict[str, Product] = {}
        for p in products:
            self._products[p.sku.upper()] = p

    @classmethod
    def from_config(cls, cfg: OrderflowConfig) -> "ProductCatalogue":
        products = [
            Product(
                sku=p.sku,
                name=p.name,
                unit_price=p.unit_price,
                requires_shipping=p.requires_shipping,
                active=p.active,
            )
            for p in cfg.products
        ]
        logger.info("[Catalogue] loaded %d products currency=%s", len(products), cfg.pricing.currency)
        return cls(products, currency=cfg.pricing.currency)

    def get(self, sku: str) -> Optional[Product]:
        return self._products.get((sku or "").strip().upper())

    def list_products(self, include_inactive: bool = False) -> List[Product]:
        return [p for p in self._products.values() if include_inactive or p.active]

    def price_line(self, sku: str, quantity: int) -> Dict[str, Any]:
        """Priced order line. Raises KeyError for an unknown SKU."""
        product = self.get(sku)
        if product is None:
            raise KeyError(sku)
        line_total = product.unit_price * quantity
        return {
            "sku": product.sku,
            "name": product.name,
            "quantity": quantity,
            "unit_price": to_money(product.unit_price),
            "line_total": to_money(line_total),
            "requires_shipping": product.requires_shipping,
        }
