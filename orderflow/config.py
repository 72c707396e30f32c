"""
Orderflow configuration loader (pricing, product catalogue, drafts).
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "orderflow.yml"


class DeliveryFeesConfig(BaseModel):
    standard: Decimal = Field(default=Decimal("4.95"), ge=0)
    express: Decimal = Field(default=Decimal("12.50"), ge=0)
    pickup: Decimal = Field(default=Decimal("0"), ge=0)


class PricingConfig(BaseModel):
    currency: str = "EUR"
    tax_rate: Decimal = Field(default=Decimal("0.20"), ge=0, le=1)
    invoice_minimum: Decimal = Field(default=Decimal("500"), ge=0)
    free_delivery_threshold: Optional[Decimal] = Field(default=Decimal("100"), ge=0)
    delivery_fees: DeliveryFeesConfig = Field(default_factory=DeliveryFeesConfig)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if len(v) != 3:
            raise ValueError("currency must be a 3-letter ISO code")
        return v


class ProductConfig(BaseModel):
    sku: str = Field(min_length=1)
    name: str
    unit_price: Decimal = Field(gt=0)
    requires_shipping: bool = True
    active: bool = True


class DraftConfig(BaseModel):
    ttl_seconds: int = Field(default=604800, ge=60)


class OrderflowConfig(BaseModel):
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    products: List[ProductConfig] = Field(default_factory=list)
    drafts: DraftConfig = Field(default_factory=DraftConfig)

    @field_validator("products")
    @classmethod
    def _unique_skus(cls, products: List[ProductConfig]) -> List[ProductConfig]:
        seen = set()
        for p in products:
            if p.sku in seen:
                raise ValueError(f"duplicate product sku: {p.sku}")
            seen.add(p.sku)
        return products


def load_config(config_path: Optional[Path] = None) -> OrderflowConfig:
    if config_path is None:
        env_path = os.getenv("ORDERFLOW_CONFIG")
        config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Orderflow config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        cfg = OrderflowConfig(**data)
        logger.info("Successfully loaded orderflow config from %s (%d products)", config_path, len(cfg.products))
        return cfg
    except ValidationError as e:
        logger.error("Orderflow config validation failed: %s", e)
        raise
